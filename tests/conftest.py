import sys
import os
import random
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import pytest

from livecs.config import Settings
from livecs.catalog.game_catalog import GameCatalog
from livecs.catalog.promotions import PromotionStore
from livecs.catalog.rtp_config import RtpConfigStore
from livecs.convo import templates as T
from livecs.convo.engine import ConversationEngine
from livecs.convo.session_logger import SessionLogger
from livecs.storage.chat_db import ChatDB


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeNotifier:
    def __init__(self):
        self.pings = []

    def ping(self, ping_type, chat_id, user_id, amount=None, message=""):
        self.pings.append({"type": ping_type, "chat_id": chat_id, "user_id": user_id,
                           "amount": amount, "message": message})


class FakeTransport:
    def __init__(self, ok: bool = True):
        self.ok = ok
        self.sent = []

    def send_message(self, chat_id, text):
        self.sent.append((chat_id, text))
        return self.ok


class FakeClassifier:
    """Stands in for the Ollama-backed classifier."""

    def __init__(self, available=True, intents=None, reply=None, fail=False):
        self.available = available
        self.intents = intents or {}
        self.reply = reply if reply is not None else {}
        self.fail = fail
        self.calls = []
        self.translations = []

    def classify_intents(self, message, chat_id="-"):
        if self.fail:
            raise RuntimeError("model down")
        return dict(self.intents)

    def build_reply_system(self, context):
        return "system"

    def generate_reply(self, system_prompt, user_message, chat_id="-"):
        self.calls.append(user_message)
        if self.fail:
            raise RuntimeError("model down")
        return self.reply

    def translate(self, text, target_lang):
        self.translations.append(target_lang)
        return text


def make_settings(tmp_path, **overrides) -> Settings:
    values = dict(
        livechat_access_token="",
        livechat_base_url="https://api.livechatinc.com/v3.5",
        livechat_timeout=8.0,
        poll_interval=5.0,
        min_response_gap=7.0,
        support_ping_url="http://localhost:3001/support-ping",
        support_ping_timeout=2.0,
        use_llm=False,
        data_dir=tmp_path,
        brand_name="GoodCasino",
        offtopic_threshold=4,
        payment_offtopic_threshold=3,
        app_port=8080,
        admin_secret="test_secret",
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def settings(tmp_path):
    return make_settings(tmp_path)


@pytest.fixture
def cs_logger(tmp_path):
    return SessionLogger(file_prefix="test", log_dir=str(tmp_path / "logs"))


@pytest.fixture
def make_engine(tmp_path, settings, clock, notifier, transport, cs_logger):
    def _make(classifier=None, transport_override=None, **kwargs):
        return ConversationEngine(
            settings,
            db=kwargs.pop("db", ChatDB(str(tmp_path / "storage" / "chats.json"))),
            classifier=classifier or FakeClassifier(available=False),
            notifier=notifier,
            promotions=PromotionStore(str(tmp_path / "promotions.json")),
            rtp=RtpConfigStore(str(tmp_path / "rtp.json"), default_link="https://example.com/rtp"),
            games=GameCatalog(str(tmp_path / "data.json")),
            brand=T.BrandConfig(str(tmp_path / "brand-config.json"), default="GoodCasino"),
            transport=transport_override or transport,
            rng=random.Random(7),
            logger=cs_logger,
            clock=clock,
            **kwargs,
        )
    return _make


@pytest.fixture
def engine(make_engine):
    return make_engine()
