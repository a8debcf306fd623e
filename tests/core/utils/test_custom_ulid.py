import pytest
from src.core.utils.custom_ulid import (
    generate_ulid,
    is_valid_ulid,
    validate_ulid_field,
)

class TestCustomUlid:
    def test_generate_ulid(self):
        ulid = generate_ulid()
        assert isinstance(ulid, str)
        assert len(ulid) == 26
        assert is_valid_ulid(ulid)

    def test_generated_ulids_sort_by_creation(self):
        first = generate_ulid()
        second = generate_ulid()
        assert first[:10] <= second[:10]

    def test_is_valid_ulid(self):
        valid_ulid = "01ARZ3NDEKTSV4RRFFQ69G5FAV"
        assert is_valid_ulid(valid_ulid) is True

        # Invalid length
        assert is_valid_ulid("123") is False

        # Invalid characters (I, L, O, U are excluded from Crockford Base32)
        assert is_valid_ulid("01ARZ3NDEKTSV4RRFFQ69G5FAI") is False

        # Not a string
        assert is_valid_ulid(123) is False

    def test_validate_ulid_field(self):
        valid_ulid = "01arz3ndektsv4rrffq69g5fav"
        expected = valid_ulid.upper()

        assert validate_ulid_field(valid_ulid) == expected
        assert validate_ulid_field(None) is None

        with pytest.raises(ValueError):
            validate_ulid_field("invalid-ulid")
