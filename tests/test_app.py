from pathlib import Path

from streamlit.testing.v1 import AppTest

from conftest import mint_token
from profile_core.config import ERRORS
from profile_core.session import browser_session

APP = str(Path(__file__).resolve().parents[1] / "app.py")


def _app() -> AppTest:
    return AppTest.from_file(APP, default_timeout=30)


def test_fresh_browser_starts_at_login():
    at = _app().run()
    assert not at.exception
    assert at.title[0].value == "Learner Profile"
    assert not at.warning


def test_expired_token_returns_to_login_with_notice():
    at = _app()
    state = {}
    browser_session(state).login(mint_token("42", exp=100))
    for key, value in state.items():
        at.session_state[key] = value

    at.run()
    assert not at.exception
    assert at.title[0].value == "Learner Profile"
    assert [w.value for w in at.warning] == [ERRORS["TOKEN_EXPIRED"]]
