import base64
import copy
from pathlib import Path

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from studybank.errors import NotFoundError, PackValidationError
from studybank.models.db.pdf_anchor import PENDING_PDF_ID, PdfAnchor
from studybank.models.db.question import Question
from studybank.models.db.subject import Subject, Topic
from studybank.services import contribution_service
from studybank.services.contribution_service import (
    export_contribution_pack,
    import_contribution_pack,
    list_pack_questions,
    load_pack_file,
)
from studybank.services.image_service import get_question_image, save_question_image
from studybank.services.question_service import create_question, update_stats
from studybank.services.settings_service import is_pack_imported
from studybank.services.subject_service import create_subject, create_topic, list_topics
from studybank.utils import json_dump, json_load

SUBJECT_KEY = "bases-de-datos-ii"
IMAGE_ID = "5f0c6a7e-1d2b-4c3a-9e8f-0a1b2c3d4e5f"
UNUSED_IMAGE_ID = "6a1d7b8f-2e3c-4d4b-8f9a-1b2c3d4e5f60"
PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-image-payload"


def _test_question(**overrides):
    question = {
        "id": "q-test",
        "subjectKey": SUBJECT_KEY,
        "topicKey": "tema-1-sql",
        "type": "TEST",
        "prompt": "¿Qué comando SQL borra una tabla?",
        "options": [{"id": "a", "text": "DROP TABLE"}, {"id": "b", "text": "DELETE FROM"}],
        "correctOptionIds": ["a"],
    }
    question.update(overrides)
    return question


def _essay_question(**overrides):
    question = {
        "id": "q-essay",
        "subjectKey": SUBJECT_KEY,
        "topicKey": "tema-2-normalizacion",
        "type": "DESARROLLO",
        "prompt": "Explica la tercera forma normal",
        "modelAnswer": "Sin dependencias transitivas",
        "keywords": ["transitiva"],
    }
    question.update(overrides)
    return question


def _cloze_question(**overrides):
    question = {
        "id": "q-cloze",
        "subjectKey": SUBJECT_KEY,
        "topicKey": "tema-1-sql",
        "type": "COMPLETAR",
        "prompt": "Completa",
        "clozeText": "La clave ___ identifica cada fila.",
        "blanks": [{"id": "b1", "accepted": ["primaria"]}],
    }
    question.update(overrides)
    return question


def make_pack(questions=None, pack_id="pack-1", created_by="ana", images=None):
    pack = {
        "version": 1,
        "kind": "contribution",
        "packId": pack_id,
        "createdBy": created_by,
        "exportedAt": "2024-03-01T10:00:00+00:00",
        "targets": [
            {
                "subjectKey": SUBJECT_KEY,
                "subjectName": "Bases de Datos II",
                "topics": [
                    {"topicKey": "tema-1-sql", "topicTitle": "Tema 1: SQL"},
                    {"topicKey": "tema-2-normalizacion", "topicTitle": "Tema 2: Normalización"},
                    {"topicKey": "tema-3-indices", "topicTitle": "Tema 3: Índices"},
                ],
            }
        ],
        "questions": (
            questions
            if questions is not None
            else [_test_question(), _essay_question(), _cloze_question()]
        ),
    }
    if images is not None:
        pack["questionImages"] = images
    return pack


def _count(db, model) -> int:
    return db.execute(select(func.count()).select_from(model)).scalar_one()


def test_import_creates_declared_entities(db) -> None:
    result = import_contribution_pack(db, make_pack())

    assert result.errors == []
    assert result.subjectsCreated == 1
    assert result.topicsCreated == 3
    assert result.questionsImported == 3
    assert result.questionsDeduplicated == 0
    assert result.alreadyImported is False

    subject = db.execute(select(Subject)).scalar_one()
    assert subject.name == "Bases de Datos II"
    topics = list_topics(db, subject.id)
    assert [t.title for t in topics] == ["Tema 1: SQL", "Tema 2: Normalización", "Tema 3: Índices"]
    assert [t.order for t in topics] == [0, 1, 2]

    for question in db.execute(select(Question)).scalars():
        assert question.subject_id == subject.id
        assert question.created_by == "ana"
        assert question.source_pack_id == "pack-1"
        assert question.stats == {"seen": 0, "correct": 0, "wrong": 0}
        assert question.content_hash.startswith("sha256:")
    assert len(list_pack_questions(db, "pack-1")) == 3


def test_import_copies_type_specific_fields(db) -> None:
    import_contribution_pack(db, make_pack())

    test_q = db.execute(select(Question).where(Question.type == "TEST")).scalar_one()
    assert test_q.options == [{"id": "a", "text": "DROP TABLE"}, {"id": "b", "text": "DELETE FROM"}]
    assert test_q.correct_option_ids == ["a"]

    cloze = db.execute(select(Question).where(Question.type == "COMPLETAR")).scalar_one()
    assert cloze.cloze_text == "La clave ___ identifica cada fila."
    assert cloze.blanks == [{"id": "b1", "accepted": ["primaria"]}]

    essay = db.execute(select(Question).where(Question.type == "DESARROLLO")).scalar_one()
    assert essay.model_answer == "Sin dependencias transitivas"
    assert essay.keywords == ["transitiva"]
    topic = db.get(Topic, essay.topic_id)
    assert topic.title == "Tema 2: Normalización"


def test_reimport_is_idempotent(db) -> None:
    pack = make_pack()
    import_contribution_pack(db, copy.deepcopy(pack))
    counts = (_count(db, Subject), _count(db, Topic), _count(db, Question))

    second = import_contribution_pack(db, copy.deepcopy(pack))

    assert second.alreadyImported is True
    assert second.subjectsCreated == 0
    assert second.topicsCreated == 0
    assert second.questionsImported == 0
    assert second.questionsDeduplicated == len(pack["questions"])
    assert (_count(db, Subject), _count(db, Topic), _count(db, Question)) == counts


def test_same_question_from_another_author_is_deduplicated(db) -> None:
    import_contribution_pack(db, make_pack(questions=[_test_question()]))
    rewritten = _test_question(
        id="other-id",
        prompt="  ¿QUE comando SQL   borra una TABLA? ",
        options=[{"id": "x2", "text": "delete from"}, {"id": "x1", "text": "Drop Table"}],
        correctOptionIds=["x1"],
        createdBy="luis",
    )

    result = import_contribution_pack(
        db, make_pack(questions=[rewritten], pack_id="pack-2", created_by="luis")
    )

    assert result.questionsImported == 0
    assert result.questionsDeduplicated == 1
    question = db.execute(select(Question)).scalar_one()
    assert question.created_by == "ana"


def test_duplicates_inside_one_pack_collapse(db) -> None:
    result = import_contribution_pack(
        db, make_pack(questions=[_test_question(), _test_question(id="copy")])
    )
    assert result.questionsImported == 1
    assert result.questionsDeduplicated == 1


def test_resolves_existing_subject_and_topics_by_slug(db) -> None:
    subject = create_subject(db, "Bases de Datos II", exam_date="2024-06-20")
    create_topic(db, subject.id, "Tema 1: SQL")

    result = import_contribution_pack(db, make_pack())

    assert result.subjectsCreated == 0
    assert result.topicsCreated == 2
    assert _count(db, Subject) == 1
    topics = list_topics(db, subject.id)
    assert [t.order for t in topics] == [0, 1, 2]
    assert db.get(Subject, subject.id).exam_date == "2024-06-20"


def test_dedup_is_scoped_to_the_subject(db) -> None:
    import_contribution_pack(db, make_pack(questions=[_test_question()]))
    other = make_pack(questions=[_test_question(subjectKey="bases-de-datos-i")], pack_id="pack-2")
    other["targets"][0]["subjectKey"] = "bases-de-datos-i"
    other["targets"][0]["subjectName"] = "Bases de Datos I"

    result = import_contribution_pack(db, other)

    assert result.subjectsCreated == 1
    assert result.questionsImported == 1
    assert _count(db, Question) == 2


@pytest.mark.parametrize(
    "raw",
    [
        [],
        "not a pack",
        {"version": 1, "kind": "bank"},
        {"version": 2, "kind": "contribution"},
        {"version": 1, "kind": "contribution", "packId": "p"},
    ],
)
def test_malformed_envelope_is_rejected_before_writes(db, raw) -> None:
    with pytest.raises(PackValidationError):
        import_contribution_pack(db, raw)
    assert _count(db, Subject) == 0
    assert _count(db, Topic) == 0
    assert _count(db, Question) == 0


def test_wrong_kind_with_valid_body_is_rejected(db) -> None:
    pack = make_pack()
    pack["kind"] = "bank"
    with pytest.raises(PackValidationError):
        import_contribution_pack(db, pack)
    assert _count(db, Subject) == 0


def test_undeclared_keys_are_reported_per_question(db) -> None:
    questions = [
        _test_question(),
        _essay_question(id="bad-topic", topicKey="tema-9"),
        _essay_question(id="bad-subject", subjectKey="redes"),
        _cloze_question(id="bad-extra", topicKeys=["tema-1-sql", "tema-7"]),
    ]

    result = import_contribution_pack(db, make_pack(questions=questions))

    assert result.questionsImported == 1
    assert len(result.errors) == 3
    assert any("bad-topic" in e and "tema-9" in e for e in result.errors)
    assert any("bad-subject" in e and "redes" in e for e in result.errors)
    assert any("bad-extra" in e and "tema-7" in e for e in result.errors)


@pytest.mark.parametrize(
    "broken",
    [
        _test_question(id="no-correct", correctOptionIds=[]),
        _test_question(id="no-options", options=None),
        _test_question(id="unknown-correct", correctOptionIds=["z"]),
        _cloze_question(id="no-blanks", blanks=None),
        _cloze_question(id="no-cloze", clozeText=""),
        _essay_question(id="no-prompt", prompt="   "),
        _essay_question(id="bad-type", type="ORAL"),
        {"id": "no-keys", "type": "TEST", "prompt": "?"},
    ],
)
def test_invalid_question_is_skipped_and_rest_commits(db, broken) -> None:
    result = import_contribution_pack(db, make_pack(questions=[broken, _essay_question()]))

    assert result.questionsImported == 1
    assert len(result.errors) == 1
    assert broken["id"] in result.errors[0]
    assert _count(db, Question) == 1


def test_duplicate_does_not_touch_existing_stats(db) -> None:
    import_contribution_pack(db, make_pack(questions=[_essay_question()]))
    question = db.execute(select(Question)).scalar_one()
    update_stats(db, question.id, "WRONG")

    import_contribution_pack(db, make_pack(questions=[_essay_question()], pack_id="pack-2"))

    db.refresh(question)
    assert question.stats["seen"] == 1
    assert question.stats["wrong"] == 1
    assert question.source_pack_id == "pack-1"


def test_multi_topic_questions(db) -> None:
    question = _cloze_question(topicKeys=["tema-1-sql", "tema-3-indices"])
    import_contribution_pack(db, make_pack(questions=[question]))

    stored = db.execute(select(Question)).scalar_one()
    titles = [db.get(Topic, tid).title for tid in stored.topic_ids]
    assert titles == ["Tema 1: SQL", "Tema 3: Índices"]
    assert stored.topic_ids[0] == stored.topic_id


def test_pdf_anchor_becomes_pending(db) -> None:
    question = _essay_question(pdfAnchor={"page": 3, "label": "Figura 2"})
    import_contribution_pack(db, make_pack(questions=[question]))

    stored = db.execute(select(Question)).scalar_one()
    anchor = db.get(PdfAnchor, stored.pdf_anchor_id)
    assert anchor.pdf_id == PENDING_PDF_ID
    assert anchor.page == 3
    assert anchor.label == "Figura 2"
    assert anchor.subject_id == stored.subject_id


def test_only_referenced_images_are_imported(db) -> None:
    payload = base64.b64encode(PNG_BYTES).decode("ascii")
    question = _essay_question(prompt=f"Observa el diagrama ![er](question-images/{IMAGE_ID}.png)")
    images = {f"{IMAGE_ID}.png": payload, f"{UNUSED_IMAGE_ID}.png": payload}

    result = import_contribution_pack(db, make_pack(questions=[question], images=images))

    assert result.imagesImported == 1
    stored = get_question_image(db, f"{IMAGE_ID}.png")
    assert stored.blob == PNG_BYTES
    assert stored.mime_type == "image/png"
    assert get_question_image(db, f"{UNUSED_IMAGE_ID}.png") is None

    again = import_contribution_pack(db, make_pack(questions=[question], images=images))
    assert again.imagesImported == 0


def test_broken_image_payload_is_reported(db) -> None:
    question = _essay_question(prompt=f"![x](question-images/{IMAGE_ID}.png)")
    images = {f"{IMAGE_ID}.png": "%%% not base64 %%%"}

    result = import_contribution_pack(db, make_pack(questions=[question], images=images))

    assert result.questionsImported == 1
    assert result.imagesImported == 0
    assert len(result.errors) == 1
    assert get_question_image(db, f"{IMAGE_ID}.png") is None


def test_imported_pack_ids_are_recorded(db) -> None:
    assert not is_pack_imported(db, "pack-1")
    import_contribution_pack(db, make_pack())
    assert is_pack_imported(db, "pack-1")


def test_export_then_import_into_another_bank(db, other_db) -> None:
    subject = create_subject(db, "Redes de Computadores")
    topic = create_topic(db, subject.id, "Tema 4: Enrutamiento")
    extra = create_topic(db, subject.id, "Tema 5: TCP")
    original = create_question(
        db,
        {
            "subjectId": subject.id,
            "topicId": topic.id,
            "topicIds": [topic.id, extra.id],
            "type": "TEST",
            "prompt": "¿Qué protocolo usa OSPF?",
            "options": [{"id": "o1", "text": "Estado de enlace"}, {"id": "o2", "text": "Vector distancia"}],
            "correctOptionIds": ["o1"],
        },
        alias="ana",
    )
    create_question(
        db,
        {"subjectId": subject.id, "topicId": topic.id, "type": "DESARROLLO", "prompt": "De otro autor"},
        alias="luis",
    )

    pack = export_contribution_pack(db, subject.id, alias="ana")
    raw = json_load(json_dump(pack.model_dump(mode="json", exclude_none=True)))

    assert raw["kind"] == "contribution"
    assert raw["createdBy"] == "ana"
    assert len(raw["questions"]) == 1
    assert raw["questions"][0]["topicKeys"] == ["tema-4-enrutamiento", "tema-5-tcp"]

    result = import_contribution_pack(other_db, raw)

    assert result.errors == []
    assert (result.subjectsCreated, result.topicsCreated, result.questionsImported) == (1, 2, 1)
    imported = other_db.execute(select(Question)).scalar_one()
    assert imported.content_hash == original.content_hash
    assert imported.created_by == "ana"
    assert imported.id != original.id

    # exporting the same content back into the source bank adds nothing
    back = import_contribution_pack(db, raw)
    assert back.questionsDeduplicated == 1
    assert back.questionsImported == 0


def test_export_unknown_subject(db) -> None:
    with pytest.raises(NotFoundError):
        export_contribution_pack(db, "missing")


def test_load_pack_file(tmp_path: Path) -> None:
    path = tmp_path / "pack.json"
    path.write_text(json_dump(make_pack()), encoding="utf-8")
    assert load_pack_file(path)["packId"] == "pack-1"

    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    with pytest.raises(PackValidationError):
        load_pack_file(broken)


def test_reimport_with_keys_unrelated_to_names_is_idempotent(db) -> None:
    question = _test_question(subjectKey="bd2", topicKey="sql")
    pack = make_pack(questions=[question])
    pack["targets"] = [
        {
            "subjectKey": "bd2",
            "subjectName": "Bases de Datos II",
            "topics": [{"topicKey": "sql", "topicTitle": "Tema 1: SQL"}],
        }
    ]

    first = import_contribution_pack(db, copy.deepcopy(pack))
    assert (first.subjectsCreated, first.topicsCreated, first.questionsImported) == (1, 1, 1)

    second = import_contribution_pack(db, copy.deepcopy(pack))

    assert (second.subjectsCreated, second.topicsCreated, second.questionsImported) == (0, 0, 0)
    assert second.questionsDeduplicated == 1
    assert (_count(db, Subject), _count(db, Topic), _count(db, Question)) == (1, 1, 1)


def test_short_keys_resolve_to_subject_created_by_a_full_slug_pack(db) -> None:
    import_contribution_pack(db, make_pack(questions=[_test_question()]))
    pack = make_pack(questions=[_test_question(subjectKey="bd2", topicKey="sql")], pack_id="pack-2")
    pack["targets"] = [
        {
            "subjectKey": "bd2",
            "subjectName": "Bases de Datos II",
            "topics": [{"topicKey": "sql", "topicTitle": "Tema 1: SQL"}],
        }
    ]

    result = import_contribution_pack(db, pack)

    assert (result.subjectsCreated, result.topicsCreated) == (0, 0)
    assert _count(db, Subject) == 1


@pytest.mark.parametrize("version", [True, 1.0, "1"])
def test_version_must_be_the_integer_one(db, version) -> None:
    pack = make_pack()
    pack["version"] = version
    with pytest.raises(PackValidationError):
        import_contribution_pack(db, pack)
    assert _count(db, Subject) == 0


def test_storage_failure_propagates_and_nothing_is_committed(db, monkeypatch) -> None:
    calls = []

    def failing_exists_by_hash(*args):
        calls.append(args)
        if len(calls) == 2:
            raise SQLAlchemyError("disk I/O error")
        return False

    monkeypatch.setattr(contribution_service, "exists_by_hash", failing_exists_by_hash)

    with pytest.raises(SQLAlchemyError):
        import_contribution_pack(db, make_pack())
    db.rollback()

    assert _count(db, Subject) == 0
    assert _count(db, Topic) == 0
    assert _count(db, Question) == 0
    assert not is_pack_imported(db, "pack-1")


def test_images_referenced_in_cloze_text_travel_with_the_pack(db, other_db) -> None:
    subject = create_subject(db, "Bases de Datos II")
    topic = create_topic(db, subject.id, "Tema 1: SQL")
    image = save_question_image(db, PNG_BYTES, "diagrama.png")
    create_question(
        db,
        {
            "subjectId": subject.id,
            "topicId": topic.id,
            "type": "COMPLETAR",
            "prompt": "Completa",
            "clozeText": f"![er](question-images/{image.filename}) La clave ___ identifica cada fila.",
            "blanks": [{"id": "b1", "accepted": ["primaria"]}],
        },
    )

    pack = export_contribution_pack(db, subject.id)
    assert list(pack.questionImages) == [image.filename]

    result = import_contribution_pack(other_db, pack.model_dump(mode="json", exclude_none=True))

    assert result.imagesImported == 1
    assert get_question_image(other_db, image.filename).blob == PNG_BYTES
