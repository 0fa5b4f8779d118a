"""
Image Processor Module.

This module handles photo preprocessing for recognition:
    - Quality assessment (blur, glare, brightness, contrast, skew)
    - Document detection heuristic and overall quality
    - Normalized variants for the multi-attempt recognition run

Variants, in preference order:
    standard       Balanced normalization with mild sharpening
    high_contrast  Aggressive contrast for dark or faded photos
    receipt_mode   Binarized, for thermal receipts and weak prints
    sharpened      Extra sharpening, only built for blurry photos
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Tuple

import numpy as np
from PIL import Image, ImageFilter, ImageOps

from invoice_engine.config import get_config
from invoice_engine.utils.logger import get_logger

# Initialize module logger
logger = get_logger(__name__)


# Normalizers mapping raw statistics onto 0..1 scores
EDGE_VARIANCE_SCALE = 2000.0
ROW_VARIANCE_SCALE = 3000.0
CONTRAST_STDEV_SCALE = 80.0
GLARE_LEVEL = 245
GLARE_SCALE = 10.0
SKEW_SAMPLE_ROWS = 10


@dataclass(frozen=True)
class QualityMetrics:
    """
    Image quality metrics, all scores in 0..1.

    Attributes:
        blur_score: Higher is blurrier.
        glare_score: Share of overexposed pixels, scaled.
        skew_score: Higher suggests a tilted or non-document image.
        brightness: Mean intensity.
        contrast: Normalized channel standard deviation.
        width: Image width in pixels.
        height: Image height in pixels.
        doc_detected: Whether the image looks like a document.
        overall_quality: Weighted combination of the above.
    """
    blur_score: float = 0.0
    glare_score: float = 0.0
    skew_score: float = 0.0
    brightness: float = 0.0
    contrast: float = 0.0
    width: int = 0
    height: int = 0
    doc_detected: bool = False
    overall_quality: float = 0.0

    @property
    def min_dimension(self) -> int:
        return min(self.width, self.height)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for key, value in data.items():
            if isinstance(value, float):
                data[key] = round(value, 4)
        return data


@dataclass(frozen=True)
class ImageVariant:
    """A normalized copy of the input image for one recognition pass."""
    name: str
    image: Image.Image
    description: str = ''


def calculate_edge_variance(gray: np.ndarray) -> float:
    """
    Variance of a Laplacian response, sampled on every other pixel.

    Lower variance means fewer sharp edges, i.e. a blurrier image.
    """
    height, width = gray.shape
    if height < 3 or width < 3:
        return 0.0

    center = gray[1:height - 1:2, 1:width - 1:2]
    left = gray[1:height - 1:2, 0:width - 2:2]
    right = gray[1:height - 1:2, 2:width:2]
    up = gray[0:height - 2:2, 1:width - 1:2]
    down = gray[2:height:2, 1:width - 1:2]

    laplacian = np.abs(4 * center - left - right - up - down)
    return float(laplacian.var())


def estimate_skew(gray: np.ndarray) -> float:
    """
    Skew proxy from the variance of sampled rows.

    Straight text lines give rows with high variance; a tilted page
    smears them out.
    """
    height, _ = gray.shape
    if height == 0:
        return 0.0

    rows = [
        int((height / SKEW_SAMPLE_ROWS) * i + height / (SKEW_SAMPLE_ROWS * 2))
        for i in range(SKEW_SAMPLE_ROWS)
    ]
    avg_variance = float(np.mean([gray[min(row, height - 1)].var() for row in rows]))
    return max(0.0, 1 - avg_variance / ROW_VARIANCE_SCALE)


def calculate_overall_quality(
    blur_score: float,
    glare_score: float,
    brightness: float,
    contrast: float,
    skew_score: float
) -> float:
    """Weighted quality score; only values past their bad threshold count."""
    blur_penalty = blur_score if blur_score > 0.5 else 0.0
    glare_penalty = glare_score if glare_score > 0.4 else 0.0
    brightness_offset = abs(brightness - 0.5)
    brightness_penalty = brightness_offset if brightness_offset > 0.3 else 0.0
    contrast_bonus = 0.2 if contrast > 0.3 else 0.0
    skew_penalty = skew_score * 0.5 if skew_score > 0.4 else 0.0

    score = (
        1
        - blur_penalty * 0.3
        - glare_penalty * 0.2
        - brightness_penalty * 0.2
        + contrast_bonus * 0.2
        - skew_penalty * 0.1
    )
    return max(0.0, min(1.0, score))


def _linear(image: Image.Image, gain: float, offset: float) -> Image.Image:
    return image.point(lambda v: max(0, min(255, int(v * gain + offset))))


def _threshold(image: Image.Image, level: int) -> Image.Image:
    return image.point(lambda v: 255 if v >= level else 0)


class ImageProcessor:
    """
    Quality assessment and variant builder for invoice photos.

    Attributes:
        target_long_edge: Long edge used when downscaling large photos.
        min_dimension: Long edge below which the standard variant upscales.
        max_dimension: Long edge above which variants are downscaled.
        sharpen_blur_threshold: Blur score that adds the sharpened variant.

    Example:
        >>> processor = ImageProcessor()
        >>> quality, variants = processor.process(image)
        >>> print(quality.blur_score, [v.name for v in variants])
    """

    def __init__(self) -> None:
        """Initialize the image processor with configuration."""
        self.target_long_edge = get_config("quality.variants.target_long_edge", 2800)
        self.min_dimension = get_config("quality.variants.min_dimension", 800)
        self.max_dimension = get_config("quality.variants.max_dimension", 4000)
        self.sharpen_blur_threshold = get_config("quality.variants.sharpen_blur_threshold", 0.3)

        logger.debug(
            f"ImageProcessor initialized (long_edge={self.target_long_edge}, "
            f"min={self.min_dimension}, max={self.max_dimension})"
        )

    def process(self, image: Image.Image) -> Tuple[QualityMetrics, List[ImageVariant]]:
        """
        Assess quality and build recognition variants.

        Args:
            image: Decoded input image.

        Returns:
            Tuple of (quality metrics, variants in preference order).
        """
        image = self._prepare(image)
        quality = self.assess_quality(image)
        variants = self.build_variants(image, quality)

        logger.info(
            f"Image {quality.width}x{quality.height}: quality {quality.overall_quality:.2f}, "
            f"blur {quality.blur_score:.2f}, {len(variants)} variants"
        )
        return quality, variants

    def _prepare(self, image: Image.Image) -> Image.Image:
        """Apply EXIF orientation and flatten to RGB on a white background."""
        image = ImageOps.exif_transpose(image)

        if image.mode == 'RGB':
            return image
        if image.mode in ('RGBA', 'LA') or (image.mode == 'P' and 'transparency' in image.info):
            rgba = image.convert('RGBA')
            background = Image.new('RGB', rgba.size, (255, 255, 255))
            background.paste(rgba, mask=rgba.split()[3])
            return background
        return image.convert('RGB')

    def assess_quality(self, image: Image.Image) -> QualityMetrics:
        """
        Compute quality metrics for an RGB image.

        Args:
            image: RGB image.

        Returns:
            QualityMetrics.
        """
        rgb = np.asarray(image.convert('RGB'), dtype=np.float64)
        gray_u8 = np.asarray(image.convert('L'))
        gray = gray_u8.astype(np.float64)

        brightness = float(rgb.mean() / 255)
        channel_stdev = float(np.mean([rgb[..., c].std() for c in range(3)]))
        contrast = min(channel_stdev / CONTRAST_STDEV_SCALE, 1.0)

        blur_score = max(0.0, 1 - calculate_edge_variance(gray) / EDGE_VARIANCE_SCALE)

        total_pixels = gray_u8.size
        overexposed = int(np.count_nonzero(gray_u8 >= GLARE_LEVEL))
        glare_score = min(overexposed / total_pixels * GLARE_SCALE, 1.0) if total_pixels else 0.0

        skew_score = estimate_skew(gray)
        doc_detected = contrast > 0.3 and blur_score < 0.6

        return QualityMetrics(
            blur_score=blur_score,
            glare_score=glare_score,
            skew_score=skew_score,
            brightness=brightness,
            contrast=contrast,
            width=image.width,
            height=image.height,
            doc_detected=doc_detected,
            overall_quality=calculate_overall_quality(
                blur_score, glare_score, brightness, contrast, skew_score
            ),
        )

    def build_variants(self, image: Image.Image, quality: QualityMetrics) -> List[ImageVariant]:
        """
        Build recognition variants in preference order.

        The sharpened variant is only built when the blur score exceeds
        ``sharpen_blur_threshold``.
        """
        variants = [
            ImageVariant('standard', self._standard(image),
                         'Balanced normalization with contrast stretch'),
            ImageVariant('high_contrast', self._high_contrast(image),
                         'Aggressive contrast for dark or faded images'),
            ImageVariant('receipt_mode', self._receipt(image),
                         'Binary threshold for thermal receipts'),
        ]
        if quality.blur_score > self.sharpen_blur_threshold:
            variants.append(ImageVariant('sharpened', self._sharpened(image),
                                         'Extra sharpening for blurry images'))
        return variants

    def _grayscale(self, image: Image.Image, upscale: bool = False) -> Image.Image:
        """Grayscale copy resized into the working range."""
        gray = image.convert('L')
        long_edge = max(gray.size)

        if long_edge > self.max_dimension:
            ratio = self.target_long_edge / long_edge
            size = (round(gray.width * ratio), round(gray.height * ratio))
            gray = gray.resize(size, Image.LANCZOS)
        elif upscale and 0 < long_edge < self.min_dimension:
            ratio = self.min_dimension / long_edge
            size = (round(gray.width * ratio), round(gray.height * ratio))
            gray = gray.resize(size, Image.LANCZOS)

        return gray

    def _standard(self, image: Image.Image) -> Image.Image:
        gray = ImageOps.autocontrast(self._grayscale(image, upscale=True))
        gray = gray.filter(ImageFilter.UnsharpMask(radius=1.2, percent=100, threshold=2))
        return gray.filter(ImageFilter.MedianFilter(size=3))

    def _high_contrast(self, image: Image.Image) -> Image.Image:
        gray = _linear(ImageOps.autocontrast(self._grayscale(image)), 1.4, -30)
        gray = gray.filter(ImageFilter.UnsharpMask(radius=1.5, percent=120, threshold=2))
        return gray.filter(ImageFilter.MedianFilter(size=3))

    def _receipt(self, image: Image.Image) -> Image.Image:
        gray = _linear(ImageOps.autocontrast(self._grayscale(image)), 1.3, -20)
        gray = _threshold(gray, 140)
        return gray.filter(ImageFilter.UnsharpMask(radius=0.8, percent=80, threshold=0))

    def _sharpened(self, image: Image.Image) -> Image.Image:
        gray = ImageOps.autocontrast(self._grayscale(image))
        gray = gray.filter(ImageFilter.UnsharpMask(radius=2.5, percent=150, threshold=1))
        return gray.filter(ImageFilter.MedianFilter(size=3))
