import pytest
from pydantic import ValidationError

from journey import TraceContext


def ctx(**kw):
    fields = dict(vuser_id=3, session_id="abc123", step="CartManagement",
                  script="BizObs_Next_Retail_Journey", test="Next_Performance_Test_20251127")
    fields.update(kw)
    return TraceContext(**fields)


def test_header_format():
    assert ctx().header() == (
        "VU=3; Session=abc123; Step=CartManagement; "
        "Script=BizObs_Next_Retail_Journey; Test=Next_Performance_Test_20251127"
    )


def test_parse_roundtrip():
    assert TraceContext.parse(ctx().header()) == ctx()


def test_for_step_returns_new_context():
    base = ctx(step="Journey_Start")
    nxt = base.for_step("CheckoutProcess")
    assert nxt.step == "CheckoutProcess"
    assert base.step == "Journey_Start"
    assert nxt.session_id == base.session_id


def test_context_is_frozen():
    with pytest.raises(ValidationError):
        ctx().step = "other"


@pytest.mark.parametrize("value", [
    "garbage",
    "VU=1; Session=s; Step=x; Script=y",
    "VU=one; Session=s; Step=x; Script=y; Test=z",
])
def test_parse_rejects_malformed(value):
    with pytest.raises(ValueError):
        TraceContext.parse(value)
