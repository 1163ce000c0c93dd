import pytest

from lexify.application.quiz_log import QuizLog


def test_record_and_accuracy():
    log = QuizLog()
    assert log.accuracy() is None
    entry = log.record("apple", True, 1200, "text-input")
    log.record("pear", False, 800, "text-input")
    assert entry.to_dict()["duration"] == 1200
    assert len(log) == 2
    assert log.accuracy() == 0.5
    assert [e.word for e in log.entries] == ["apple", "pear"]


def test_oldest_entries_drop_off():
    log = QuizLog(max_entries=2)
    for word in ("a", "b", "c"):
        log.record(word, True, 10, "multiple-choice")
    assert [e.word for e in log.entries] == ["b", "c"]


def test_size_must_be_positive():
    with pytest.raises(ValueError):
        QuizLog(max_entries=0)
