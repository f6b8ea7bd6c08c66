import pytest
from sqlalchemy import func, select

from studybank.errors import PackValidationError
from studybank.models.db.pdf_anchor import PENDING_PDF_ID, PdfAnchor
from studybank.models.db.question import Question
from studybank.models.db.subject import Subject, Topic
from studybank.services.bank_service import (
    export_bank,
    export_global_bank,
    import_bank,
    merge_global_bank,
)
from studybank.services.question_service import create_question, update_question, update_stats
from studybank.services.settings_service import get_settings
from studybank.services.subject_service import create_subject, create_topic
from studybank.utils import json_dump, json_load


def _count(db, model) -> int:
    return db.execute(select(func.count()).select_from(model)).scalar_one()


def _seed(db):
    subject = create_subject(db, "Sistemas Operativos", color="#ff0000", exam_date="2024-06-15")
    first = create_topic(db, subject.id, "Procesos", tags=["core"])
    second = create_topic(db, subject.id, "Memoria")
    anchor = PdfAnchor(subject_id=subject.id, pdf_id="pdf-1", page=7, label="Tabla 3")
    anchor.bbox = {"x": 0.1, "y": 0.2, "w": 0.3, "h": 0.4}
    other_anchor = PdfAnchor(subject_id=subject.id, pdf_id="pdf-1", page=9)
    db.add_all([anchor, other_anchor])
    db.commit()

    question = create_question(
        db,
        {
            "subjectId": subject.id,
            "topicId": first.id,
            "topicIds": [first.id, second.id],
            "type": "TEST",
            "prompt": "¿Qué es un proceso zombi?",
            "options": [{"id": "a", "text": "Terminado sin recoger"}, {"id": "b", "text": "Bloqueado"}],
            "correctOptionIds": ["a"],
            "pdfAnchorId": anchor.id,
        },
        alias="ana",
    )
    update_stats(db, question.id, "CORRECT")
    create_question(
        db,
        {
            "subjectId": subject.id,
            "topicId": second.id,
            "type": "COMPLETAR",
            "prompt": "Completa",
            "clozeText": "La ___ virtual usa páginas.",
            "blanks": [{"id": "b1", "accepted": ["memoria"]}],
        },
    )
    return subject


def _roundtrip(bank) -> dict:
    return json_load(json_dump(bank.model_dump(mode="json", exclude_none=True)))


def test_export_bank_envelope(db) -> None:
    subject = _seed(db)
    raw = _roundtrip(export_bank(db))

    assert raw["version"] == 1
    assert raw["kind"] == "bank"
    assert [s["name"] for s in raw["subjects"]] == ["Sistemas Operativos"]
    assert raw["subjects"][0]["examDate"] == "2024-06-15"
    assert len(raw["topics"]) == 2
    assert len(raw["questions"]) == 2
    assert len(raw["pdfAnchors"]) == 2
    test_q = next(q for q in raw["questions"] if q["type"] == "TEST")
    assert test_q["stats"]["seen"] == 1
    assert test_q["subjectId"] == subject.id


def test_export_bank_restricted_to_subjects(db) -> None:
    kept = _seed(db)
    create_subject(db, "Otra")
    raw = _roundtrip(export_bank(db, [kept.id]))
    assert [s["id"] for s in raw["subjects"]] == [kept.id]


def test_import_bank_rewrites_every_identifier(db, other_db) -> None:
    _seed(db)
    existing = create_subject(other_db, "Local")
    raw = _roundtrip(export_bank(db))
    old_ids = (
        {s["id"] for s in raw["subjects"]}
        | {t["id"] for t in raw["topics"]}
        | {q["id"] for q in raw["questions"]}
        | {a["id"] for a in raw["pdfAnchors"]}
    )

    result = import_bank(other_db, raw)

    assert result.errors == []
    assert (result.subjectsAdded, result.topicsAdded, result.questionsAdded) == (1, 2, 2)
    assert result.pdfAnchorsAdded == 2

    subject = other_db.execute(select(Subject).where(Subject.id != existing.id)).scalar_one()
    topic_ids = {t.id for t in other_db.execute(select(Topic)).scalars()}
    anchors = {a.id: a for a in other_db.execute(select(PdfAnchor)).scalars()}
    assert subject.id not in old_ids
    assert not topic_ids & old_ids
    assert not set(anchors) & old_ids

    for question in other_db.execute(select(Question)).scalars():
        assert question.id not in old_ids
        assert question.subject_id == subject.id
        assert question.topic_id in topic_ids
        assert set(question.topic_ids or []) <= topic_ids
        if question.pdf_anchor_id:
            assert question.pdf_anchor_id in anchors

    pdf_ids = {a.pdf_id for a in anchors.values()}
    assert len(pdf_ids) == 1
    assert "pdf-1" not in pdf_ids


def test_import_bank_keeps_stats_and_metadata(other_db, db) -> None:
    _seed(db)
    import_bank(other_db, _roundtrip(export_bank(db)))

    test_q = other_db.execute(select(Question).where(Question.type == "TEST")).scalar_one()
    assert test_q.stats["seen"] == 1
    assert test_q.created_by == "ana"
    assert len(test_q.topic_ids) == 2
    anchor = other_db.get(PdfAnchor, test_q.pdf_anchor_id)
    assert anchor.page == 7
    assert anchor.bbox == {"x": 0.1, "y": 0.2, "w": 0.3, "h": 0.4}
    subject = other_db.get(Subject, test_q.subject_id)
    assert subject.exam_date == "2024-06-15"


def test_import_bank_twice_duplicates(db, other_db) -> None:
    _seed(db)
    raw = _roundtrip(export_bank(db))
    import_bank(other_db, raw)
    import_bank(other_db, raw)
    assert _count(other_db, Subject) == 2
    assert _count(other_db, Question) == 4


def test_import_bank_drops_references_outside_the_batch(other_db) -> None:
    now = "2024-01-01T00:00:00+00:00"
    raw = {
        "version": 1,
        "kind": "bank",
        "exportedAt": now,
        "subjects": [{"id": "s1", "name": "Física", "createdAt": now, "updatedAt": now}],
        "topics": [
            {"id": "t1", "subjectId": "s1", "title": "Ondas", "order": 0, "createdAt": now, "updatedAt": now},
            {"id": "t2", "subjectId": "ghost", "title": "Perdido", "order": 1, "createdAt": now, "updatedAt": now},
        ],
        "questions": [
            {
                "id": "q1", "subjectId": "s1", "topicId": "t1", "topicIds": ["t1", "t-unknown"],
                "type": "DESARROLLO", "prompt": "Define onda", "pdfAnchorId": "a-unknown",
                "stats": {"seen": 0, "correct": 0, "wrong": 0}, "createdAt": now, "updatedAt": now,
            },
            {
                "id": "q2", "subjectId": "s1", "topicId": "t2", "type": "DESARROLLO",
                "prompt": "Huérfana", "stats": {"seen": 0, "correct": 0, "wrong": 0},
                "createdAt": now, "updatedAt": now,
            },
        ],
        "pdfAnchors": [],
    }

    result = import_bank(other_db, raw)

    assert result.topicsAdded == 1
    assert result.questionsAdded == 1
    assert len(result.errors) == 2
    question = other_db.execute(select(Question)).scalar_one()
    assert question.topic_ids is None
    assert question.pdf_anchor_id is None


def test_import_bank_keeps_pending_pdf_id(db, other_db) -> None:
    subject = create_subject(db, "Química")
    db.add(PdfAnchor(subject_id=subject.id, pdf_id=PENDING_PDF_ID, page=1))
    db.commit()
    import_bank(other_db, _roundtrip(export_bank(db)))
    assert other_db.execute(select(PdfAnchor)).scalar_one().pdf_id == PENDING_PDF_ID


@pytest.mark.parametrize(
    "raw",
    [
        {"version": 1, "kind": "contribution"},
        {"version": 3, "kind": "bank"},
        {"version": 1, "kind": "bank", "exportedAt": "x"},
        ["bank"],
    ],
)
def test_import_bank_rejects_bad_envelopes(other_db, raw) -> None:
    with pytest.raises(PackValidationError):
        import_bank(other_db, raw)
    assert _count(other_db, Subject) == 0


@pytest.mark.parametrize("version", [True, 1.0])
def test_bank_version_must_be_the_integer_one(db, other_db, version) -> None:
    _seed(db)
    raw = _roundtrip(export_bank(db))
    raw["version"] = version

    with pytest.raises(PackValidationError):
        import_bank(other_db, raw)
    with pytest.raises(PackValidationError):
        merge_global_bank(other_db, raw)
    assert _count(other_db, Subject) == 0


def test_global_bank_strips_personal_data(db) -> None:
    _seed(db)
    question = db.execute(select(Question).where(Question.type == "TEST")).scalar_one()
    question.source_pack_id = "pack-9"
    db.commit()

    raw = _roundtrip(export_global_bank(db))

    assert "examDate" not in raw["subjects"][0]
    for item in raw["questions"]:
        assert item["stats"] == {"seen": 0, "correct": 0, "wrong": 0}
        assert "sourcePackId" not in item
    assert any(q.get("createdBy") == "ana" for q in raw["questions"])


def test_merge_global_bank_is_idempotent(db, other_db) -> None:
    _seed(db)
    raw = _roundtrip(export_global_bank(db))

    first = merge_global_bank(other_db, raw)
    assert (first.subjectsAdded, first.topicsAdded, first.questionsAdded) == (1, 2, 2)
    assert first.skipped == 0

    second = merge_global_bank(other_db, raw)
    assert (second.subjectsAdded, second.topicsAdded, second.questionsAdded) == (0, 0, 0)
    assert second.skipped == 2
    assert _count(other_db, Question) == 2
    assert _count(other_db, PdfAnchor) == 1
    assert get_settings(other_db).global_bank_synced_at


def test_merge_global_bank_keeps_local_state(db, other_db) -> None:
    _seed(db)
    local = create_subject(other_db, "sistemas   operativos", exam_date="2024-07-01")
    create_topic(other_db, local.id, "PROCESOS")

    result = merge_global_bank(other_db, _roundtrip(export_global_bank(db)))

    assert result.subjectsAdded == 0
    assert result.topicsAdded == 1
    other_db.refresh(local)
    assert local.exam_date == "2024-07-01"
    for question in other_db.execute(select(Question)).scalars():
        assert question.subject_id == local.id
        assert question.stats == {"seen": 0, "correct": 0, "wrong": 0}


def test_merge_global_bank_picks_up_edited_questions(db, other_db) -> None:
    _seed(db)
    merge_global_bank(other_db, _roundtrip(export_global_bank(db)))
    question = db.execute(select(Question).where(Question.type == "COMPLETAR")).scalar_one()
    update_question(db, question.id, {"clozeText": "La ___ virtual usa marcos."})

    result = merge_global_bank(other_db, _roundtrip(export_global_bank(db)))

    assert result.questionsAdded == 1
    assert result.skipped == 1
