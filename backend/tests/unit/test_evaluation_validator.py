import pytest

from app.models.evaluation import TEXT_LIMITS
from app.services.evaluation_validator import validate_evaluation

CURRENT_YEAR = 2026


def _errors_by_field(result):
    return {error.field: error.message for error in result.errors}


def test_valid_payload_is_trimmed_and_stripped(valid_payload):
    payload = valid_payload(
        expectedGraduationYear=2027,
        roleInTeam="   Starting goalkeeper   ",
        favouriteColour="blue",
    )

    result = validate_evaluation(payload, current_year=CURRENT_YEAR)

    assert result.valid is True
    assert result.errors == []
    assert result.value["roleInTeam"] == "Starting goalkeeper"
    assert "favouriteColour" not in result.value


def test_all_violations_are_collected(valid_payload):
    payload = valid_payload(
        expectedGraduationYear=2027,
        performanceLevel="ok",
        mentality="x" * 501,
        coachFinalComment="Too short",
    )
    del payload["availableToTransfer"]

    result = validate_evaluation(payload, current_year=CURRENT_YEAR)

    assert result.valid is False
    errors = _errors_by_field(result)
    assert set(errors) == {
        "availableToTransfer",
        "performanceLevel",
        "mentality",
        "coachFinalComment",
    }
    assert errors["availableToTransfer"] == "Please specify if the player is available for transfer"
    assert "at least 10 characters" in errors["performanceLevel"]
    assert "must not exceed 500 characters" in errors["mentality"]
    assert "at least 20 characters" in errors["coachFinalComment"]


def test_placeholder_role_is_rejected_with_field_message(valid_payload):
    result = validate_evaluation(
        valid_payload(expectedGraduationYear=2027, roleInTeam="N/A"), current_year=CURRENT_YEAR
    )

    errors = _errors_by_field(result)
    assert list(errors) == ["roleInTeam"]
    assert "placeholder" in errors["roleInTeam"]
    assert errors["roleInTeam"].startswith("Role in team")


@pytest.mark.parametrize("value", ["none", "  TBD  ", "...", "Nothing"])
def test_placeholders_rejected_even_when_long_enough(valid_payload, value):
    result = validate_evaluation(
        valid_payload(expectedGraduationYear=2027, coachFinalComment=value.ljust(25)),
        current_year=CURRENT_YEAR,
    )

    errors = _errors_by_field(result)
    assert "placeholder" in errors["coachFinalComment"]


def test_length_is_measured_after_trimming(valid_payload):
    result = validate_evaluation(
        valid_payload(expectedGraduationYear=2027, technique="  short    "),
        current_year=CURRENT_YEAR,
    )

    assert "technique" in _errors_by_field(result)


@pytest.mark.parametrize("year,valid", [(2025, False), (2026, True), (2032, True), (2033, False)])
def test_graduation_year_window(valid_payload, year, valid):
    result = validate_evaluation(
        valid_payload(expectedGraduationYear=year), current_year=CURRENT_YEAR
    )

    assert result.valid is valid
    if not valid:
        assert _errors_by_field(result)["expectedGraduationYear"] == (
            "Graduation year must be between 2026 and 2032"
        )


def test_graduation_year_span_is_configurable(valid_payload):
    result = validate_evaluation(
        valid_payload(expectedGraduationYear=2030), current_year=CURRENT_YEAR, year_span=2
    )

    assert result.valid is False


def test_type_errors_use_field_messages(valid_payload):
    payload = valid_payload(
        availableToTransfer="maybe",
        expectedGraduationYear=True,
        physique=42,
    )

    result = validate_evaluation(payload, current_year=CURRENT_YEAR)

    errors = _errors_by_field(result)
    assert errors["availableToTransfer"] == "Transfer availability must be yes or no"
    assert errors["expectedGraduationYear"] == "Graduation year must be a valid 4-digit year"
    assert errors["physique"] == "Physical assessment must be text"


def test_empty_payload_reports_every_required_field():
    result = validate_evaluation({}, current_year=CURRENT_YEAR)

    errors = _errors_by_field(result)
    assert len(result.errors) == 2 + len(TEXT_LIMITS)
    assert errors["coachFinalComment"] == "Final coach comment is required"


def test_zero_year_span_allows_only_current_year(valid_payload):
    this_year = validate_evaluation(
        valid_payload(expectedGraduationYear=2026), current_year=CURRENT_YEAR, year_span=0
    )
    next_year = validate_evaluation(
        valid_payload(expectedGraduationYear=2027), current_year=CURRENT_YEAR, year_span=0
    )

    assert this_year.valid is True
    assert _errors_by_field(next_year)["expectedGraduationYear"] == (
        "Graduation year must be between 2026 and 2026"
    )
