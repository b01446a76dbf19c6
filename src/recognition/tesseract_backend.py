"""
Tesseract OCR recognizer.

Reads the battle banner of an encounter screen: lines containing the level
marker ("Lv.") carry the names of the encountered monsters. The recognizer
returns those names as the label and the mean OCR word confidence as the
confidence.
"""

from __future__ import annotations

import logging
import re
import string
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

import cv2
import numpy as np
import pytesseract

from models.frame import FrameData
from models.recognition import RecognitionResult
from .backend import RecognitionError, Recognizer

DEFAULT_BANNED_WORDS = ("lv.", "llv.", "alpha")

_DIGIT_OR_SPACE = re.compile(r"[0-9\s]")

# (word, confidence 0-100)
Word = Tuple[str, float]


@dataclass(frozen=True)
class TesseractConfig:
    """
    Tesseract recognizer configuration.

    Attributes:
        tesseract_cmd: Path to the tesseract binary (None = use PATH).
        lang: Tesseract language code.
        psm: Page segmentation mode.
        timeout: Seconds before tesseract is killed (0 = no limit).
        crop: Region of interest as ratios [x1, y1, x2, y2] of the frame.
        grayscale: Convert to grayscale before OCR.
        brightness_offset: Value added to every pixel before OCR.
        anchor_text: Only lines containing this text are considered.
        banned_words: Words containing any of these are never names.
        min_word_length: Names must be longer than this.
    """
    tesseract_cmd: Optional[str] = None
    lang: str = "eng"
    psm: int = 11
    timeout: float = 0
    crop: Optional[Sequence[float]] = None
    grayscale: bool = True
    brightness_offset: int = -50
    anchor_text: str = "Lv."
    banned_words: Sequence[str] = field(default_factory=lambda: DEFAULT_BANNED_WORDS)
    min_word_length: int = 3

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "TesseractConfig":
        crop = d.get("crop")
        return cls(
            tesseract_cmd=d.get("tesseract_cmd"),
            lang=d.get("lang", "eng"),
            psm=int(d.get("psm", 11)),
            timeout=float(d.get("timeout", 0) or 0),
            crop=tuple(float(v) for v in crop) if crop else None,
            grayscale=bool(d.get("grayscale", True)),
            brightness_offset=int(d.get("brightness_offset", -50)),
            anchor_text=d.get("anchor_text", "Lv."),
            banned_words=tuple(d.get("banned_words") or DEFAULT_BANNED_WORDS),
            min_word_length=int(d.get("min_word_length", 3)),
        )


def crop_ratio(image: np.ndarray, crop: Optional[Sequence[float]]) -> np.ndarray:
    """Crop an image to [x1, y1, x2, y2] given as ratios of width/height."""
    if not crop:
        return image
    h, w = image.shape[:2]
    x1, y1, x2, y2 = crop
    left, right = int(round(x1 * w)), int(round(x2 * w))
    top, bottom = int(round(y1 * h)), int(round(y2 * h))
    left, top = max(0, left), max(0, top)
    right, bottom = min(w, right), min(h, bottom)
    if right <= left or bottom <= top:
        raise RecognitionError(f"Crop {tuple(crop)} is empty for a {w}x{h} frame")
    return image[top:bottom, left:right]


def preprocess(image: np.ndarray, config: TesseractConfig) -> np.ndarray:
    """Crop, grayscale and darken a frame the way the OCR expects it."""
    out = crop_ratio(image, config.crop)
    if config.grayscale and out.ndim == 3:
        code = cv2.COLOR_BGRA2GRAY if out.shape[2] == 4 else cv2.COLOR_BGR2GRAY
        out = cv2.cvtColor(out, code)
    if config.brightness_offset:
        # saturate at 0/255 rather than wrapping
        out = np.clip(out.astype(np.int16) + config.brightness_offset, 0, 255).astype(np.uint8)
    return out


def group_lines(data: Dict[str, List[Any]]) -> List[List[Word]]:
    """Group tesseract word data into text lines, dropping non-word boxes."""
    lines: "OrderedDict[Tuple[int, int, int], List[Word]]" = OrderedDict()
    for i, text in enumerate(data.get("text", [])):
        text = (text or "").strip()
        try:
            conf = float(data["conf"][i])
        except (TypeError, ValueError):
            continue
        if not text or conf < 0:
            continue
        key = (data["block_num"][i], data["par_num"][i], data["line_num"][i])
        lines.setdefault(key, []).append((text, conf))
    return list(lines.values())


def extract_names(
    words: Sequence[Word],
    banned_words: Sequence[str] = DEFAULT_BANNED_WORDS,
    min_word_length: int = 3,
) -> List[Word]:
    """
    Pick the name words out of one banner line.

    Names start with a capital letter, contain no digits, are longer than
    min_word_length and contain none of the banned tokens.
    """
    names: List[Word] = []
    for word, conf in words:
        if not word or not word[0].isupper():
            continue
        lowered = word.lower()
        if any(banned in lowered for banned in banned_words):
            continue
        name = lowered.strip(string.punctuation)
        if len(name) <= min_word_length or _DIGIT_OR_SPACE.search(name):
            continue
        names.append((name, conf))
    return names


def result_from_data(
    data: Dict[str, List[Any]],
    config: TesseractConfig,
    timestamp: float,
    frame_index: int = 0,
) -> RecognitionResult:
    """Turn tesseract word data into a RecognitionResult."""
    names: List[Word] = []
    for line in group_lines(data):
        line_text = " ".join(word for word, _ in line)
        if config.anchor_text and config.anchor_text not in line_text:
            continue
        names.extend(extract_names(line, config.banned_words, config.min_word_length))

    if not names:
        return RecognitionResult.empty(timestamp, frame_index)

    label = " ".join(name for name, _ in names)
    confidence = sum(conf for _, conf in names) / (100.0 * len(names))
    return RecognitionResult(
        label=label,
        confidence=min(max(confidence, 0.0), 1.0),
        timestamp=timestamp,
        frame_index=frame_index,
    )


class TesseractRecognizer(Recognizer):
    """Encounter banner reader backed by the tesseract OCR engine."""

    def __init__(self, config: TesseractConfig):
        self.config = config
        if config.tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = config.tesseract_cmd

    def recognize(self, frame_data: FrameData) -> RecognitionResult:
        image = preprocess(frame_data.frame, self.config)
        try:
            data = pytesseract.image_to_data(
                image,
                lang=self.config.lang,
                config=f"--psm {self.config.psm}",
                output_type=pytesseract.Output.DICT,
                timeout=self.config.timeout,
            )
        except pytesseract.TesseractNotFoundError as e:
            raise RecognitionError(f"Tesseract is not installed or not on PATH: {e}") from e
        except (pytesseract.TesseractError, RuntimeError) as e:
            raise RecognitionError(f"Tesseract failed: {e}") from e

        result = result_from_data(data, self.config, frame_data.timestamp, frame_data.frame_index)
        if not result.is_empty:
            logging.debug(
                f"[OCR] frame={frame_data.frame_index} label={result.label!r} "
                f"conf={result.confidence:.2f}"
            )
        return result
