import pytest

from studybank.utils import normalize_text, slugify, strip_diacritics


def test_slugify_subject_name() -> None:
    assert slugify("Bases de Datos II") == "bases-de-datos-ii"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("Tema 1: SQL", "tema-1-sql"),
        ("Tema 2: Normalización", "tema-2-normalizacion"),
        ("  Álgebra   Lineal -- I ", "algebra-lineal-i"),
        ("C++ & Java", "c-java"),
        ("", ""),
    ],
)
def test_slugify_examples(raw: str, expected: str) -> None:
    assert slugify(raw) == expected


@pytest.mark.parametrize(
    "raw",
    ["Bases de Datos II", "Tema 2: Normalización", "  Ñandú -- 3 ", "already-a-slug"],
)
def test_slugify_is_idempotent(raw: str) -> None:
    assert slugify(slugify(raw)) == slugify(raw)


def test_normalize_text_folds_case_accents_and_whitespace() -> None:
    assert normalize_text("  PARÍS  ") == "paris"
    assert normalize_text("Árbol \t  Rojo\n") == "arbol rojo"


def test_normalize_text_can_keep_diacritics() -> None:
    assert normalize_text("  Árbol  Rojo ", remove_diacritics=False) == "árbol rojo"


def test_strip_diacritics() -> None:
    assert strip_diacritics("canción ñ ü") == "cancion n u"
