"""
Tests for the tesseract recognizer.

pytesseract.image_to_data is monkeypatched so the tests never need the
tesseract binary.
"""

import numpy as np
import pytest
import pytesseract

from models.frame import FrameData
from recognition import RecognitionError, TesseractConfig, TesseractRecognizer, create_recognizer_from_config
from recognition.tesseract_backend import (
    crop_ratio,
    extract_names,
    group_lines,
    preprocess,
    result_from_data,
)


def _data(*lines):
    """
    Build an image_to_data style dict.

    Each line is a list of (text, conf) tuples; lines get consecutive
    line numbers inside block 1.
    """
    data = {"text": [], "conf": [], "block_num": [], "par_num": [], "line_num": []}
    for line_num, words in enumerate(lines, start=1):
        for text, conf in words:
            data["text"].append(text)
            data["conf"].append(conf)
            data["block_num"].append(1)
            data["par_num"].append(1)
            data["line_num"].append(line_num)
    return data


def _frame(value=200, shape=(100, 200, 3)):
    return FrameData.from_numpy(np.full(shape, value, dtype=np.uint8), timestamp=7.0, frame_index=3)


class TestExtractNames:
    def test_keeps_capitalized_names(self):
        names = extract_names([("Wild", 90.0), ("Pidgey", 88.0), ("Lv.5", 80.0)])
        assert names == [("wild", 90.0), ("pidgey", 88.0)]

    def test_drops_lowercase_and_short_words(self):
        names = extract_names([("appeared", 90.0), ("Abc", 90.0), ("Oddish", 70.0)])
        assert names == [("oddish", 70.0)]

    def test_drops_banned_and_digits(self):
        names = extract_names([("LLv.12", 95.0), ("Alpha", 95.0), ("R2D2x", 95.0), ("Rattata", 60.0)])
        assert names == [("rattata", 60.0)]

    def test_strips_punctuation(self):
        assert extract_names([("Pidgey!", 91.0)]) == [("pidgey", 91.0)]


class TestGroupLines:
    def test_groups_by_line_and_skips_blanks(self):
        data = _data(
            [("Pidgey", 90), ("Lv.3", 85), ("", -1)],
            [("Rattata", "75.5"), ("  ", 95)],
        )
        lines = group_lines(data)
        assert lines == [
            [("Pidgey", 90.0), ("Lv.3", 85.0)],
            [("Rattata", 75.5)],
        ]

    def test_negative_confidence_dropped(self):
        assert group_lines(_data([("Pidgey", -1)])) == []


class TestResultFromData:
    def test_banner_line_gives_label(self):
        config = TesseractConfig()
        data = _data([("Pidgey", 90), ("Lv.3", 85)], [("Fight", 99), ("Bag", 99)])

        result = result_from_data(data, config, timestamp=1.5, frame_index=4)

        assert result.label == "pidgey"
        assert result.confidence == pytest.approx(0.90)
        assert result.timestamp == 1.5
        assert result.frame_index == 4

    def test_horde_joins_names(self):
        config = TesseractConfig()
        data = _data([("Pidgey", 80), ("Lv.3", 85), ("Oddish", 60), ("Lv.4", 90)])

        result = result_from_data(data, config, timestamp=0.0)

        assert result.label == "pidgey oddish"
        assert result.confidence == pytest.approx(0.70)

    def test_no_anchor_is_empty(self):
        result = result_from_data(_data([("Pidgey", 90)]), TesseractConfig(), timestamp=2.0)
        assert result.is_empty
        assert result.confidence == 0.0
        assert result.timestamp == 2.0

    def test_empty_data(self):
        assert result_from_data(_data(), TesseractConfig(), timestamp=0.0).is_empty

    def test_anchor_disabled(self):
        config = TesseractConfig(anchor_text="")
        result = result_from_data(_data([("Pidgey", 90)]), config, timestamp=0.0)
        assert result.label == "pidgey"


class TestPreprocess:
    def test_crop_ratio(self):
        image = np.zeros((100, 200, 3), dtype=np.uint8)
        out = crop_ratio(image, (0.25, 0.0, 0.75, 0.5))
        assert out.shape == (50, 100, 3)

    def test_no_crop(self):
        image = np.zeros((10, 10), dtype=np.uint8)
        assert crop_ratio(image, None) is image

    def test_empty_crop_raises(self):
        image = np.zeros((100, 200, 3), dtype=np.uint8)
        with pytest.raises(RecognitionError):
            crop_ratio(image, (0.5, 0.5, 0.5, 0.9))

    def test_grayscale_and_darken(self):
        config = TesseractConfig(crop=(0.0, 0.0, 0.5, 0.5), brightness_offset=-50)
        out = preprocess(np.full((40, 60, 3), 200, dtype=np.uint8), config)
        assert out.shape == (20, 30)
        assert int(out[0, 0]) == 150

    def test_darken_saturates_at_zero(self):
        config = TesseractConfig(grayscale=False, brightness_offset=-50)
        out = preprocess(np.full((4, 4, 3), 20, dtype=np.uint8), config)
        assert out.shape == (4, 4, 3)
        assert int(out.max()) == 0


class TestTesseractConfig:
    def test_from_dict(self):
        config = TesseractConfig.from_dict(
            {"psm": 6, "crop": [0.1, 0.0, 1.0, 0.4], "banned_words": ["foo"], "timeout": None}
        )
        assert config.psm == 6
        assert config.crop == (0.1, 0.0, 1.0, 0.4)
        assert config.banned_words == ("foo",)
        assert config.timeout == 0
        assert config.anchor_text == "Lv."

    def test_defaults(self):
        config = TesseractConfig.from_dict({})
        assert config == TesseractConfig()


class TestTesseractRecognizer:
    def test_recognize(self, monkeypatch):
        calls = []

        def fake_image_to_data(image, lang, config, output_type, timeout):
            calls.append({"shape": image.shape, "lang": lang, "config": config, "timeout": timeout})
            return _data([("Pidgey", 92), ("Lv.3", 85)])

        monkeypatch.setattr(pytesseract, "image_to_data", fake_image_to_data)
        recognizer = TesseractRecognizer(TesseractConfig(crop=(0.0, 0.0, 1.0, 0.5), timeout=2))

        result = recognizer.recognize(_frame())

        assert result.label == "pidgey"
        assert result.confidence == pytest.approx(0.92)
        assert result.timestamp == 7.0
        assert result.frame_index == 3
        assert calls == [{"shape": (50, 200), "lang": "eng", "config": "--psm 11", "timeout": 2}]

    def test_tesseract_error_wrapped(self, monkeypatch):
        def failing(*args, **kwargs):
            raise pytesseract.TesseractError(1, "bad image")

        monkeypatch.setattr(pytesseract, "image_to_data", failing)
        recognizer = TesseractRecognizer(TesseractConfig())

        with pytest.raises(RecognitionError, match="Tesseract failed"):
            recognizer.recognize(_frame())

    def test_timeout_wrapped(self, monkeypatch):
        def timing_out(*args, **kwargs):
            raise RuntimeError("Tesseract process timeout")

        monkeypatch.setattr(pytesseract, "image_to_data", timing_out)
        recognizer = TesseractRecognizer(TesseractConfig(timeout=1))

        with pytest.raises(RecognitionError):
            recognizer.recognize(_frame())

    def test_missing_binary_wrapped(self, monkeypatch):
        def not_found(*args, **kwargs):
            raise pytesseract.TesseractNotFoundError()

        monkeypatch.setattr(pytesseract, "image_to_data", not_found)
        recognizer = TesseractRecognizer(TesseractConfig())

        with pytest.raises(RecognitionError, match="not installed"):
            recognizer.recognize(_frame())


class TestFactory:
    def test_tesseract_backend(self):
        recognizer = create_recognizer_from_config({"backend": "tesseract", "tesseract": {"psm": 6}})
        assert isinstance(recognizer, TesseractRecognizer)
        assert recognizer.config.psm == 6

    def test_unknown_backend(self):
        with pytest.raises(ValueError, match="Unknown recognition backend"):
            create_recognizer_from_config({"backend": "easyocr"})
