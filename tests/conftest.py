from __future__ import annotations

import pytest

from decision_graph.config import settings
from decision_graph.db import session as db_session


@pytest.fixture(autouse=True)
def _restore_settings_and_engine() -> None:
    original_settings = settings.model_copy(deep=True)
    original_engine = db_session.engine
    original_session_factory = db_session.SessionLocal
    yield
    for field_name in type(settings).model_fields:
        setattr(settings, field_name, getattr(original_settings, field_name))
    if db_session.engine is not original_engine:
        db_session.engine.dispose()
    db_session.engine = original_engine
    db_session.SessionLocal = original_session_factory
