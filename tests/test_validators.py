import pytest

from calendar_models import DateConfigFields, EventFields, MaterialFields
from errors import ValidationError
from validators import coerce_int, validate

EVENT = {'school': 'wlhs', 'date': '2024-09-03', 'title': 'Back to school night'}
MATERIAL = {
    'school': 'wvhs',
    'date': '2024-09-03',
    'grade_level': 10,
    'title': 'Chemistry notes',
    'link': 'https://example.org/notes',
}


def test_event_defaults():
    fields = validate('event.create', EVENT)
    assert isinstance(fields, EventFields)
    assert fields.description == ''
    assert fields.department is None
    assert fields.time is None


def test_missing_required_fields_lists_all_of_them():
    with pytest.raises(ValidationError) as excinfo:
        validate('event.create', {'school': 'wlhs'})
    assert excinfo.value.fields == ['school', 'date', 'title']
    assert excinfo.value.message == 'School, date, and title are required'


def test_presence_is_checked_before_domains():
    with pytest.raises(ValidationError) as excinfo:
        validate('material.create', {**MATERIAL, 'school': 'other', 'link': ''})
    assert 'link' in excinfo.value.fields
    assert excinfo.value.message.endswith('are required')


def test_school_outside_domain():
    with pytest.raises(ValidationError) as excinfo:
        validate('event.create', {**EVENT, 'school': 'other'})
    assert excinfo.value.fields == ['school']


def test_school_checked_before_grade():
    with pytest.raises(ValidationError) as excinfo:
        validate('material.create', {**MATERIAL, 'school': 'other', 'grade_level': 13})
    assert excinfo.value.fields == ['school']


@pytest.mark.parametrize('grade', [13, 8, '13', 'ten', '10abc', 10.5])
def test_grade_outside_domain(grade):
    with pytest.raises(ValidationError) as excinfo:
        validate('material.create', {**MATERIAL, 'grade_level': grade})
    assert excinfo.value.message == 'Grade level must be 9, 10, 11, or 12'


def test_grade_string_is_coerced():
    fields = validate('material.create', {**MATERIAL, 'grade_level': '12'})
    assert isinstance(fields, MaterialFields)
    assert fields.grade_level == 12
    assert fields.password == ''


def test_coerce_int():
    assert coerce_int(' 11 ') == 11
    assert coerce_int(True) is None
    assert coerce_int('1e2') is None


def test_invalid_date_reported_as_validation_error():
    with pytest.raises(ValidationError) as excinfo:
        validate('event.create', {**EVENT, 'date': 'someday'})
    assert excinfo.value.message == 'Invalid date format'


def test_update_requires_title_only():
    fields = validate('event.update', {'title': 'Renamed', 'school': 'ignored'})
    assert fields.title == 'Renamed'
    assert fields.description == ''
    with pytest.raises(ValidationError) as excinfo:
        validate('material.update', {'title': 'x'})
    assert excinfo.value.fields == ['title', 'link']


def test_day_schedule_null_and_domain():
    assert validate('day_schedule', {'date': '2024-09-03', 'schedule': ''}).schedule is None
    assert validate('day_schedule', {'date': '2024-09-03'}).schedule is None
    with pytest.raises(ValidationError) as excinfo:
        validate('day_schedule', {'date': '2024-09-03', 'schedule': 'C'})
    assert excinfo.value.message == 'Schedule must be A or B'
    with pytest.raises(ValidationError):
        validate('day_schedule', {'schedule': 'A'})


def test_day_type_is_free_form():
    fields = validate('day_type', {'date': '2024-09-03', 'type': 'Late start'})
    assert fields.type == 'Late start'


def test_date_config_leaves_omitted_fields_unset():
    fields = validate('date_config', {'date_key': '2024-09-03', 'is_access': 'true'})
    assert isinstance(fields, DateConfigFields)
    assert fields.is_access is True
    assert fields.color is None
    assert fields.day_type is None


def test_date_config_blank_color_is_left_unset():
    fields = validate('date_config', {'date_key': '2024-09-03', 'color': '', 'day_type': ''})
    assert fields.color is None
    assert fields.day_type is None


@pytest.mark.parametrize(
    'payload',
    [
        {'date_key': '2024-09-03', 'color': 'red'},
        {'date_key': '2024-09-03', 'day_type': 'C'},
        {'date_key': '2024-09-03', 'is_access': 'maybe'},
    ],
)
def test_date_config_rejections(payload):
    with pytest.raises(ValidationError):
        validate('date_config', payload)


def test_material_filter_grade_optional():
    assert validate('material.list', {'school': 'wlhs', 'grade': None}).grade is None
    assert validate('material.list', {'school': 'wlhs', 'grade': '9'}).grade == 9
    with pytest.raises(ValidationError) as excinfo:
        validate('material.list', {'school': 'wlhs', 'grade': '7'})
    assert excinfo.value.message == 'Grade must be 9, 10, 11, or 12'
