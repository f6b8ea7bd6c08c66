import pytest

from studybank.errors import NotFoundError
from studybank.services.compact_service import export_all_compact_subjects, export_compact_subject
from studybank.services.question_service import create_question
from studybank.services.subject_service import create_subject, create_topic, delete_topic


def test_compact_export_projects_questions(db) -> None:
    subject = create_subject(db, "Cálculo Numérico")
    topic = create_topic(db, subject.id, "Tema 3: Interpolación")
    question = create_question(
        db,
        {"subjectId": subject.id, "topicId": topic.id, "type": "PRACTICO", "prompt": "Calcula p(2)"},
    )

    compact = export_compact_subject(db, subject.id)

    assert compact.asignatura == "Cálculo Numérico"
    assert compact.slug == "calculo-numerico"
    assert compact.total == 1
    item = compact.preguntas[0]
    assert item.t == "P"
    assert item.p == "Calcula p(2)"
    assert item.h == question.content_hash
    assert item.tp == "tema-3-interpolacion"


def test_compact_export_type_codes_and_dangling_topics(db) -> None:
    subject = create_subject(db, "Física")
    kept = create_topic(db, subject.id, "Ondas")
    gone = create_topic(db, subject.id, "Óptica")
    for question_type, topic in (("TEST", kept), ("DESARROLLO", kept), ("COMPLETAR", gone)):
        create_question(
            db,
            {"subjectId": subject.id, "topicId": topic.id, "type": question_type, "prompt": question_type},
        )
    delete_topic(db, gone.id)

    data = export_compact_subject(db, subject.id).model_dump(mode="json", exclude_none=True)

    by_prompt = {item["p"]: item for item in data["preguntas"]}
    assert by_prompt["TEST"]["t"] == "T"
    assert by_prompt["DESARROLLO"]["t"] == "D"
    assert by_prompt["COMPLETAR"]["t"] == "C"
    assert "tp" not in by_prompt["COMPLETAR"]
    assert by_prompt["TEST"]["tp"] == "ondas"


def test_compact_export_of_every_subject(db) -> None:
    create_subject(db, "Uno")
    create_subject(db, "Dos")
    exports = export_all_compact_subjects(db)
    assert sorted(e.slug for e in exports) == ["dos", "uno"]
    assert all(e.total == 0 and e.preguntas == [] for e in exports)


def test_compact_export_unknown_subject(db) -> None:
    with pytest.raises(NotFoundError):
        export_compact_subject(db, "missing")
