import pytest

from studytrack.errors import ValidationError
from studytrack.utils import net_calculator as nc


def test_net_with_quarter_penalty():
    score = nc.reconcile({"correct": 0, "wrong": 0, "blank": 40}, "correct", 35, 40)
    score = nc.reconcile(score, "wrong", 3, 40)
    assert score == {"correct": 35, "wrong": 3, "blank": 2}
    assert nc.net(score) == 34.25


def test_net_can_be_negative():
    assert nc.net({"correct": 0, "wrong": 4, "blank": 0}) == -1.0


def test_reconcile_lowers_other_field_to_keep_sum():
    before = {"correct": 4, "wrong": 3, "blank": 3}
    after = nc.reconcile(before, "correct", 9, 10)
    assert after == {"correct": 9, "wrong": 1, "blank": 0}
    assert before == {"correct": 4, "wrong": 3, "blank": 3}


def test_reconcile_lowers_correct_when_wrong_overflows():
    after = nc.reconcile({"correct": 8, "wrong": 1, "blank": 1}, "wrong", 5, 10)
    assert after == {"correct": 5, "wrong": 5, "blank": 0}


def test_reconcile_leaves_other_field_alone_when_it_fits():
    after = nc.reconcile({"correct": 35, "wrong": 0, "blank": 5}, "wrong", 3, 40)
    assert after == {"correct": 35, "wrong": 3, "blank": 2}


def test_reconcile_blank_edit_lowers_wrong_first():
    after = nc.reconcile({"correct": 5, "wrong": 5, "blank": 0}, "blank", 4, 10)
    assert after == {"correct": 5, "wrong": 1, "blank": 4}
    after = nc.reconcile({"correct": 5, "wrong": 1, "blank": 4}, "blank", 7, 10)
    assert after == {"correct": 3, "wrong": 0, "blank": 7}


def test_reconcile_blank_is_rederived_from_answers():
    after = nc.reconcile({"correct": 2, "wrong": 1, "blank": 7}, "blank", 3, 10)
    assert after == {"correct": 2, "wrong": 1, "blank": 7}


def test_reconcile_is_deterministic():
    state = {"correct": 2, "wrong": 7, "blank": 1}
    assert nc.reconcile(state, "wrong", 9, 10) == nc.reconcile(state, "wrong", 9, 10)


@pytest.mark.parametrize("value", [-1, 11])
def test_reconcile_rejects_out_of_range(value):
    with pytest.raises(ValidationError):
        nc.reconcile({"correct": 0, "wrong": 0, "blank": 10}, "correct", value, 10)


def test_exam_tables():
    tyt = nc.subjects_for("TYT")
    assert len(tyt) == 10
    assert dict(tyt)["Türkçe"] == 40
    assert sum(m for _, m in tyt) == 120
    assert nc.subjects_for("AYT", "sayisal") == [("Matematik", 40), ("Fizik", 14), ("Kimya", 13), ("Biyoloji", 13)]
    assert sum(m for _, m in nc.subjects_for("AYT", "sozel")) == 80


def test_exam_field_pairing():
    with pytest.raises(ValidationError):
        nc.subjects_for("AYT")
    with pytest.raises(ValidationError):
        nc.subjects_for("TYT", "esit")
    with pytest.raises(ValidationError):
        nc.subjects_for("KPSS")


def test_initial_scores_are_blank():
    scores = nc.initial_scores(nc.subjects_for("AYT", "esit"))
    assert scores["Edebiyat"] == {"correct": 0, "wrong": 0, "blank": 40}


def test_build_snapshot():
    subject_scores, total = nc.build_snapshot("TYT", None, {
        "Türkçe": {"correct": 35, "wrong": 3},
        "Matematik": {"correct": 20, "wrong": 5},
    })
    assert subject_scores["Türkçe"] == {"correct": 35, "wrong": 3, "net": 34.25}
    assert subject_scores["Matematik"]["net"] == 18.75
    assert total == "53.00"


def test_build_snapshot_rejects_unknown_subject_and_overflow():
    with pytest.raises(ValidationError):
        nc.build_snapshot("TYT", None, {"Edebiyat": {"correct": 1, "wrong": 0}})
    with pytest.raises(ValidationError):
        nc.build_snapshot("TYT", None, {"Fizik": {"correct": 6, "wrong": 2}})
