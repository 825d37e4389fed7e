# tests/test_plate_normalizer.py
"""Unit tests for plate normalization and classification."""

import pytest

from platelink.domain import PlateFamily
from platelink.services.plate_normalizer import normalize, classify, is_valid, PlateRejected


class TestNormalize:
    @pytest.mark.parametrize("raw,expected", [
        ("MH12AB1234", "MH12AB1234"),
        ("mh 12 ab 1234", "MH12AB1234"),
        ("MH-12-AB-1234", "MH12AB1234"),
        ("  mh.12/ab 1234 ", "MH12AB1234"),
        ("KA05P1234", "KA05P1234"),
    ])
    def test_standard_inputs(self, raw, expected):
        plate = normalize(raw)
        assert plate.value == expected
        assert plate.family == PlateFamily.STANDARD

    def test_bharat_series_lowercase(self):
        plate = normalize("26bh1234aa")
        assert plate.value == "26BH1234AA"
        assert plate.family == PlateFamily.BHARAT_SERIES

    def test_bharat_series_spaced(self):
        assert normalize("22 BH 0001 C").family == PlateFamily.BHARAT_SERIES

    def test_delhi_special_three_letters(self):
        plate = normalize("DL 01 C AA 1234")
        assert plate.value == "DL01CAA1234"
        assert plate.family == PlateFamily.DELHI_SPECIAL

    def test_delhi_single_digit_rto(self):
        assert normalize("DL3CAB1234").family == PlateFamily.DELHI_SPECIAL

    def test_delhi_plate_fitting_standard_is_standard(self):
        # DL01CA1234 fits both patterns; Standard is tried first
        assert normalize("DL01CA1234").family == PlateFamily.STANDARD

    @pytest.mark.parametrize("raw", ["MH12BH1234", "BH12BH1234", "MH12B1234"])
    def test_incidental_bh_stays_standard(self, raw):
        assert normalize(raw).family == PlateFamily.STANDARD

    def test_renormalizing_is_a_noop(self):
        for raw in ["mh 12 ab 1234", "26bh1234aa", "dl-01-c-aa-1234", "KA05P1234"]:
            first = normalize(raw)
            assert normalize(first.value) == first


class TestRejections:
    def test_empty(self):
        with pytest.raises(PlateRejected) as exc:
            normalize("  - ")
        assert exc.value.reason == "Empty"

    def test_none(self):
        with pytest.raises(PlateRejected):
            normalize(None)

    def test_too_short(self):
        with pytest.raises(PlateRejected) as exc:
            normalize("MH12A1")
        assert exc.value.reason == "InvalidLength"

    def test_too_long(self):
        with pytest.raises(PlateRejected) as exc:
            normalize("MH12AB1234567")
        assert exc.value.reason == "InvalidLength"

    @pytest.mark.parametrize("raw", ["1234ABCD", "MH1AB12345", "26BX1234AA", "XX12ABC1234"])
    def test_unrecognized_format(self, raw):
        with pytest.raises(PlateRejected) as exc:
            normalize(raw)
        assert exc.value.reason == "UnrecognizedFormat"

    def test_rejection_is_a_validation_error(self):
        with pytest.raises(PlateRejected) as exc:
            normalize("nope")
        assert exc.value.status_code == 400


class TestClassify:
    def test_classify_and_is_valid(self):
        assert classify("26BH1234AA") == PlateFamily.BHARAT_SERIES
        assert classify("garbage!!") is None
        assert is_valid("MH12AB1234")
        assert not is_valid("MH12")
