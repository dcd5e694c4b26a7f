import pytest

from tfworkspace.errors import (
    ApplyFailed,
    DestroyFailed,
    PlanFailed,
    RefreshFailed,
    TerraformError,
    TerraformLog,
    parse_terraform_logs,
)

ERROR_LOG = "\n".join(
    [
        r'{"@level":"info","@message":"Terraform 1.0.3","@module":"terraform.ui","@timestamp":"2021-11-14T23:23:14.009380+03:00","terraform":"1.0.3","type":"version","ui":"0.1.0"}',
        r'{"@level":"error","@message":"Error: Missing required argument","@module":"terraform.ui","@timestamp":"2021-11-14T23:23:14.576254+03:00","diagnostic":{"severity":"error","summary":"Missing required argument","detail":"The argument \"location\" is required, but no definition was found.","range":{"filename":"main.tf.json","start":{"line":24,"column":7,"byte":568},"end":{"line":24,"column":8,"byte":569}},"snippet":{"context":"resource.azurerm_resource_group.example","code":"      }","start_line":24,"highlight_start_offset":6,"highlight_end_offset":7,"values":[]}},"type":"diagnostic"}',
        r'{"@level":"error","@message":"Error: Missing required argument","@module":"terraform.ui","@timestamp":"2021-11-14T23:23:14.576430+03:00","diagnostic":{"severity":"error","summary":"Missing required argument","detail":"The argument \"name\" is required, but no definition was found.","range":{"filename":"main.tf.json","start":{"line":24,"column":7,"byte":568},"end":{"line":24,"column":8,"byte":569}},"snippet":{"context":"resource.azurerm_resource_group.example","code":"      }","start_line":24,"highlight_start_offset":6,"highlight_end_offset":7,"values":[]}},"type":"diagnostic"}',
    ]
).encode()

EXPECTED_DETAIL = (
    'Missing required argument: The argument "location" is required, but no definition was found.\n'
    'Missing required argument: The argument "name" is required, but no definition was found.'
)


@pytest.mark.parametrize(
    "cls, prefix",
    [
        (ApplyFailed, "apply failed"),
        (DestroyFailed, "destroy failed"),
        (RefreshFailed, "refresh failed"),
        (PlanFailed, "plan failed"),
    ],
)
def test_message_from_error_logs(cls, prefix):
    err = cls(ERROR_LOG)
    assert str(err) == f"{prefix}: {EXPECTED_DETAIL}"


@pytest.mark.parametrize(
    "logs, expected",
    [(None, "apply failed: "), (ERROR_LOG, f"apply failed: {EXPECTED_DETAIL}")],
)
def test_apply_failed_is_recognised(logs, expected):
    err = ApplyFailed(logs)
    assert str(err) == expected
    assert isinstance(err, TerraformError)
    assert not isinstance(err, (DestroyFailed, RefreshFailed, PlanFailed))
    assert not isinstance(RuntimeError("boom"), TerraformError)


@pytest.mark.parametrize(
    "logs, expected",
    [(None, "destroy failed: "), (ERROR_LOG, f"destroy failed: {EXPECTED_DETAIL}")],
)
def test_destroy_failed_is_recognised(logs, expected):
    err = DestroyFailed(logs)
    assert str(err) == expected
    assert isinstance(err, TerraformError)
    assert not isinstance(err, (ApplyFailed, RefreshFailed, PlanFailed))


@pytest.mark.parametrize(
    "logs, expected",
    [(None, "refresh failed: "), (ERROR_LOG, f"refresh failed: {EXPECTED_DETAIL}")],
)
def test_refresh_failed_is_recognised(logs, expected):
    err = RefreshFailed(logs)
    assert str(err) == expected
    assert isinstance(err, TerraformError)
    assert not isinstance(err, (ApplyFailed, DestroyFailed, PlanFailed))


@pytest.mark.parametrize(
    "logs, expected",
    [(None, "plan failed: "), (ERROR_LOG, f"plan failed: {EXPECTED_DETAIL}")],
)
def test_plan_failed_is_recognised(logs, expected):
    err = PlanFailed(logs)
    assert str(err) == expected
    assert isinstance(err, TerraformError)
    assert not isinstance(err, (ApplyFailed, DestroyFailed, RefreshFailed))


def test_no_logs_message():
    assert str(ApplyFailed(None)) == "apply failed: "
    assert str(PlanFailed(b"")) == "plan failed: "


def test_unparseable_logs_keep_parse_error():
    err = DestroyFailed(b"errboom")
    assert err.parse_error
    assert str(err).endswith(": destroy failed")
    assert str(err).startswith(err.parse_error)


def test_raises_as_exception():
    err = ApplyFailed(ERROR_LOG)
    with pytest.raises(TerraformError) as excinfo:
        raise err
    assert excinfo.value is err
    assert str(excinfo.value) == f"apply failed: {EXPECTED_DETAIL}"


def test_parse_terraform_logs():
    logs = parse_terraform_logs(ERROR_LOG)
    assert [log.level for log in logs] == ["info", "error", "error"]
    assert logs[0] == TerraformLog(level="info", message="Terraform 1.0.3")
    assert logs[1].summary == "Missing required argument"
    assert logs[2].severity == "error"


def test_parse_skips_blank_lines():
    logs = parse_terraform_logs('\n  \n{"@level":"error","@message":"m"}\n\n')
    assert logs == [TerraformLog(level="error", message="m")]


def test_error_without_summary_uses_message():
    err = RefreshFailed('{"@level":"error","@message":"plain message"}')
    assert str(err) == "refresh failed: plain message"


@pytest.mark.parametrize("bad", ["not json", "[1, 2]", '{"@level": 3}'])
def test_parse_rejects_invalid_lines(bad):
    with pytest.raises(ValueError):
        parse_terraform_logs(bad)