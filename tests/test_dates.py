from datetime import date, datetime, time, timedelta, timezone

import pytest

from dates import normalize_date, normalize_time, require_date
from errors import ValidationError


@pytest.mark.parametrize('value', [None, '', '   '])
def test_empty_input_is_no_date(value):
    assert normalize_date(value) is None


def test_structured_dates_serialize_directly():
    assert normalize_date(date(2024, 3, 5)) == '2024-03-05'
    assert normalize_date(datetime(2024, 3, 5, 23, 59)) == '2024-03-05'


@pytest.mark.parametrize(
    'value',
    ['2024-03-05', '2024-03-05T08:30:00', '2024-03-05 08:30', '2024/03/05', '03/05/2024'],
)
def test_string_formats(value):
    assert normalize_date(value) == '2024-03-05'


def test_datetime_keeps_written_calendar_date():
    # Late evening west of UTC would roll over if converted; it must not be.
    assert normalize_date('2024-03-05T23:30:00-08:00') == '2024-03-05'
    assert normalize_date('2024-03-05T00:15:00Z') == '2024-03-05'
    aware = datetime(2024, 3, 5, 23, 30, tzinfo=timezone(timedelta(hours=-8)))
    assert normalize_date(aware) == '2024-03-05'


@pytest.mark.parametrize('value', ['not a date', '2024-13-01', '2024-02-30', 20240305])
def test_unparseable_input_fails(value):
    with pytest.raises(ValidationError) as excinfo:
        normalize_date(value)
    assert excinfo.value.message == 'Invalid date format'
    assert excinfo.value.fields == ['date']


def test_normalized_output_is_a_fixed_point():
    first = normalize_date('03/05/2024')
    assert normalize_date(first) == first


def test_require_date_rejects_missing():
    with pytest.raises(ValidationError) as excinfo:
        require_date('', 'date_key')
    assert excinfo.value.message == 'Date key is required'


def test_normalize_time():
    assert normalize_time('14:30') == '14:30:00'
    assert normalize_time(time(9, 5, 7, 123)) == '09:05:07'
    assert normalize_time('') is None
    with pytest.raises(ValidationError):
        normalize_time('half past two')
