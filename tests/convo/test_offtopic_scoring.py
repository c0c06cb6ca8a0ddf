import sys
import os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..', '..')))

from livecs.convo import offtopic

STORY = ("kemarin saya jalan jalan ke pantai sama teman lama, terus kami makan ikan bakar "
         "sampai sore dan pulangnya kena macet panjang sekali")


def test_greeting_is_not_off_topic():
    result = offtopic.score("hi")
    assert result.is_off_topic is False
    assert result.score < 0


def test_long_story_is_off_topic():
    assert len(STORY) > 100
    result = offtopic.score(STORY)
    assert result.is_off_topic is True
    assert result.type == "story"


def test_rant_type():
    text = ("capek banget sumpah hari ini, semuanya bikin stress dan ribet terus dari pagi "
            "sampai malam gak ada habisnya pokoknya")
    result = offtopic.score(text)
    assert result.is_off_topic
    assert result.type == "rant"


def test_business_words_pull_score_down():
    text = "kemarin saya deposit tapi belum masuk"
    assert offtopic.score(text).is_off_topic is False


def test_short_noise_is_off_topic():
    result = offtopic.score("wkwkwk")
    assert result.score == 3
    assert offtopic.score("wkwkwk", threshold=3).is_off_topic
    assert not offtopic.score("wkwkwk").is_off_topic


def test_keywords_match_whole_words_only():
    # "this" contains "hi"
    assert offtopic.score("this").score == offtopic.score("xxxx").score


def test_score_is_pure():
    assert offtopic.score(STORY).to_dict() == offtopic.score(STORY).to_dict()


def test_threshold_is_configurable():
    text = "tadi pagi"
    base = offtopic.score(text)
    assert offtopic.score(text, threshold=base.score).is_off_topic
    assert not offtopic.score(text, threshold=base.score + 1).is_off_topic


def test_payment_profile_clears_payment_words():
    result = offtopic.payment_score("mau perpanjang langganan pakai usdt")
    assert result.is_off_topic is False
    assert result.type == "gambling"


def test_payment_profile_personal_question():
    result = offtopic.payment_score("siapa kamu sebenarnya sih")
    assert result.is_off_topic is True
    assert result.type == "personal"


def test_payment_profile_casual_chat():
    result = offtopic.payment_score("lagi apa nih, cuaca panas banget ya hari ini")
    assert result.is_off_topic is True
    assert result.type == "casual"
