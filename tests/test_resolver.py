"""
Test Deterministic Verdict Resolver
"""
import pytest

from grader.schemas import Provenance, Question, QuestionType, Resolution
from grader.services.resolver import is_objective, local_verdict, resolve


def test_true_false_chinese_alias_passes(tf_question):
    assert resolve(tf_question, "对") == Resolution.LOCAL_PASS
    assert resolve(tf_question, "TRUE") == Resolution.LOCAL_PASS


def test_true_false_wrong_answer_fails_locally(tf_question):
    assert resolve(tf_question, "错") == Resolution.LOCAL_FAIL
    assert resolve(tf_question, "也许吧") == Resolution.LOCAL_FAIL


def test_multiple_choice_option_text_against_letter_key(mc_question):
    assert resolve(mc_question, "狗") == Resolution.LOCAL_PASS


def test_multiple_choice_letter_answers(mc_question):
    assert resolve(mc_question, "B") == Resolution.LOCAL_PASS
    assert resolve(mc_question, "b") == Resolution.LOCAL_PASS
    assert resolve(mc_question, "A") == Resolution.LOCAL_FAIL
    assert resolve(mc_question, "猫") == Resolution.LOCAL_FAIL


def test_multiple_choice_letter_against_text_key():
    question = Question(
        id="q",
        type=QuestionType.MULTIPLE_CHOICE,
        question="2 + 2 = ?",
        options=["3", "4", "5"],
        answer="4",
    )
    assert resolve(question, "b") == Resolution.LOCAL_PASS
    assert resolve(question, "4") == Resolution.LOCAL_PASS
    assert resolve(question, "C") == Resolution.LOCAL_FAIL
    # Letter out of range selects nothing.
    assert resolve(question, "Z") == Resolution.LOCAL_FAIL


def test_multiple_choice_prefix_rule_is_opt_in():
    question = Question(
        id="q",
        type=QuestionType.MULTIPLE_CHOICE,
        question="哪种动物会汪汪叫？",
        options=["猫", "狗", "鸟"],
        answer="B. 狗",
    )
    assert resolve(question, "B") == Resolution.LOCAL_FAIL
    assert resolve(question, "B", choice_prefix=True) == Resolution.LOCAL_PASS
    assert resolve(question, "C", choice_prefix=True) == Resolution.LOCAL_FAIL


def test_multiple_choice_without_options_fails_locally():
    question = Question(
        id="q",
        type=QuestionType.MULTIPLE_CHOICE,
        question="broken",
        options=None,
        answer="A",
    )
    assert resolve(question, "A") == Resolution.LOCAL_FAIL
    assert resolve(question, "A", choice_prefix=True) == Resolution.LOCAL_FAIL


def test_fill_blank_exact_match_after_normalization(fill_blank_question):
    assert resolve(fill_blank_question, "北京/上海") == Resolution.LOCAL_PASS
    assert resolve(fill_blank_question, " 北京 /上海 ") == Resolution.LOCAL_PASS


def test_fill_blank_mismatch_is_deferred(fill_blank_question):
    assert resolve(fill_blank_question, "上海/北京") == Resolution.NEEDS_EXTERNAL_JUDGE


def test_short_answer_mismatch_is_deferred(short_answer_question):
    assert resolve(short_answer_question, "惯性定律") == Resolution.NEEDS_EXTERNAL_JUDGE
    assert resolve(short_answer_question, short_answer_question.answer) == Resolution.LOCAL_PASS


@pytest.mark.parametrize("raw", ["", "   ", "\n\t", None])
@pytest.mark.parametrize(
    "fixture_name",
    ["mc_question", "tf_question", "fill_blank_question", "short_answer_question"],
)
def test_unanswered_always_fails_locally(request, fixture_name, raw):
    question = request.getfixturevalue(fixture_name)
    assert resolve(question, raw) == Resolution.LOCAL_FAIL
    assert resolve(question, raw, choice_prefix=True) == Resolution.LOCAL_FAIL


@pytest.mark.parametrize("raw", ["A", "狗", "正确", "北京", "zzz", "1"])
def test_objective_questions_never_deferred(mc_question, tf_question, raw):
    for question in (mc_question, tf_question):
        assert resolve(question, raw) != Resolution.NEEDS_EXTERNAL_JUDGE
        assert resolve(question, raw, choice_prefix=True) != Resolution.NEEDS_EXTERNAL_JUDGE


def test_is_objective():
    assert is_objective(QuestionType.MULTIPLE_CHOICE)
    assert is_objective(QuestionType.TRUE_FALSE)
    assert not is_objective(QuestionType.FILL_BLANK)
    assert not is_objective(QuestionType.SHORT_ANSWER)


def test_local_verdict():
    verdict = local_verdict(Resolution.LOCAL_PASS)
    assert verdict.is_correct is True
    assert verdict.provenance == Provenance.LOCAL
    assert verdict.feedback is None
    assert local_verdict(Resolution.LOCAL_FAIL).is_correct is False

    with pytest.raises(ValueError):
        local_verdict(Resolution.NEEDS_EXTERNAL_JUDGE)
