"""压缩质量校验：比较写出前的图像与实际写出的结果。"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import cv2
import numpy as np
from PIL import Image


@dataclass(slots=True)
class QualityMetrics:
    ssim: float
    phash_distance: float


def measure_quality(reference: Image.Image, encoded: Image.Image) -> QualityMetrics:
    """计算编码前后图像的 SSIM 与 pHash 距离。"""

    return QualityMetrics(
        ssim=compute_ssim(reference, encoded),
        phash_distance=compute_phash_distance(reference, encoded),
    )


def compute_phash_distance(original: Image.Image, processed: Image.Image) -> float:
    """计算两张图片的感知哈希距离（pHash）。"""

    hash_a = _phash(original)
    hash_b = _phash(processed)
    # Hamming distance
    distance = np.count_nonzero(hash_a != hash_b)
    return float(distance)


def compute_ssim(original: Image.Image, processed: Image.Image) -> float:
    """计算两张图片的结构相似度（11x11 高斯窗口 SSIM 的均值）。"""

    size = processed.size
    if size[0] <= 0 or size[1] <= 0:
        return 0.0

    img_a = _to_gray_array(original, size).astype(np.float64)
    img_b = _to_gray_array(processed, size).astype(np.float64)

    c1 = (0.01 * 255) ** 2
    c2 = (0.03 * 255) ** 2

    mu_a = _blur(img_a)
    mu_b = _blur(img_b)
    sigma_a_sq = _blur(img_a * img_a) - mu_a**2
    sigma_b_sq = _blur(img_b * img_b) - mu_b**2
    sigma_ab = _blur(img_a * img_b) - mu_a * mu_b

    ssim_map = ((2 * mu_a * mu_b + c1) * (2 * sigma_ab + c2)) / (
        (mu_a**2 + mu_b**2 + c1) * (sigma_a_sq + sigma_b_sq + c2)
    )
    value = float(ssim_map.mean())
    return max(min(value, 1.0), -1.0)


def _blur(array: np.ndarray) -> np.ndarray:
    return cv2.GaussianBlur(array, (11, 11), 1.5)


def _phash(image: Image.Image) -> np.ndarray:
    """计算图片的 pHash 位阵列。"""

    resized = image.convert("L").resize((32, 32), Image.LANCZOS)
    array = np.asarray(resized, dtype=np.float32)
    dct = cv2.dct(array)
    low_freq = dct[:8, :8]
    median = np.median(low_freq[1:, 1:])
    return low_freq > median


def _to_gray_array(image: Image.Image, size: Tuple[int, int]) -> np.ndarray:
    resized = image.convert("L").resize(size, Image.LANCZOS)
    return np.asarray(resized, dtype=np.float32)
