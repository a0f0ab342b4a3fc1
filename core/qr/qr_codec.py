"""
二维码编解码

提供简单易用的函数，把消息编码为二维码图像，或把二维码图像解码为消息。
编码使用 qrcode 生成模块矩阵，解码使用 OpenCV 的 QRCodeDetector。
所有图像均为 OpenCV 约定的 numpy 数组（BGR 或灰度）。
"""

from pathlib import Path
from typing import Optional, Union

import cv2
import numpy as np
import qrcode
from qrcode.constants import ERROR_CORRECT_H, ERROR_CORRECT_L, ERROR_CORRECT_M, ERROR_CORRECT_Q
from qrcode.exceptions import DataOverflowError

from core.exceptions import (
    DecodeError, DecodeFailure, EncodeError, ImageFileError, QRCodeNotFoundError
)
from utils.config_manager import get_config_manager
from utils.logger import get_logger
from utils.path_utils import get_image_format, is_supported_image_file


logger = get_logger("qr_codec")

# 纠错等级名称到 qrcode 常量的映射
ERROR_CORRECTION_LEVELS = {
    'L': ERROR_CORRECT_L,
    'M': ERROR_CORRECT_M,
    'Q': ERROR_CORRECT_Q,
    'H': ERROR_CORRECT_H
}


def encode_message(msg: str, width: int, height: int,
                   error_correction: Optional[str] = None,
                   border: Optional[int] = None) -> np.ndarray:
    """
    把消息编码为二维码图像

    模块矩阵按能放下的最大整数倍放大，居中放在白色画布上。
    画布至少为 width x height，二维码本身更大时画布随之扩大。

    Args:
        msg (str): 要编码的消息
        width (int): 图像宽度（像素）
        height (int): 图像高度（像素）
        error_correction (Optional[str]): 纠错等级 L/M/Q/H，None表示使用配置
        border (Optional[int]): 静区宽度（模块数），None表示使用配置

    Returns:
        np.ndarray: BGR二维码图像

    Raises:
        EncodeError: 消息为空、尺寸无效或消息超出二维码容量
    """
    if not msg:
        raise EncodeError("消息内容为空")
    if width <= 0 or height <= 0:
        raise EncodeError(f"图像尺寸无效: {width}x{height}")

    settings = get_config_manager().get_qr_settings()
    if error_correction is None:
        error_correction = settings.get('error_correction', 'L')
    if border is None:
        border = settings.get('border', 4)

    level = ERROR_CORRECTION_LEVELS.get(str(error_correction).upper())
    if level is None:
        raise ValueError(f"未知的纠错等级: {error_correction}")

    qr = qrcode.QRCode(version=None, error_correction=level, box_size=1, border=int(border))
    qr.add_data(msg)
    try:
        qr.make(fit=True)
    except DataOverflowError as e:
        raise EncodeError(f"消息长度 {len(msg)} 超出二维码容量") from e

    modules = np.array(qr.get_matrix(), dtype=bool)
    module_count = modules.shape[0]
    scale = max(1, min(width // module_count, height // module_count))

    code = np.where(modules, 0, 255).astype(np.uint8)
    code = np.repeat(np.repeat(code, scale, axis=0), scale, axis=1)
    code_size = code.shape[0]

    canvas_width = max(width, code_size)
    canvas_height = max(height, code_size)
    canvas = np.full((canvas_height, canvas_width), 255, dtype=np.uint8)
    left = (canvas_width - code_size) // 2
    top = (canvas_height - code_size) // 2
    canvas[top:top + code_size, left:left + code_size] = code

    logger.debug(f"消息编码完成: 版本 {qr.version}, {module_count}x{module_count} 模块, "
                 f"放大 {scale} 倍, 图像 {canvas_width}x{canvas_height}")
    return cv2.cvtColor(canvas, cv2.COLOR_GRAY2BGR)


def decode_message(image: np.ndarray) -> str:
    """
    解码二维码图像

    Args:
        image (np.ndarray): 灰度、BGR或BGRA图像

    Returns:
        str: 解码得到的消息

    Raises:
        QRCodeNotFoundError: 图像中没有二维码
        DecodeError: 找到二维码但无法解码
    """
    if image is None or not isinstance(image, np.ndarray) or image.size == 0:
        raise QRCodeNotFoundError("图像为空，没有找到二维码")

    if image.ndim == 3 and image.shape[2] == 4:
        image = cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)

    detector = cv2.QRCodeDetector()
    try:
        text, points, _ = detector.detectAndDecode(image)
    except cv2.error as e:
        raise DecodeError(f"解码二维码时发生错误: {e}", DecodeFailure.UNREADABLE) from e

    if points is None:
        raise QRCodeNotFoundError()
    if not text:
        raise DecodeError("找到二维码但无法解码", DecodeFailure.UNREADABLE)

    logger.debug(f"二维码解码完成: {len(text)} 个字符")
    return text


def load_image(file_path: Union[str, Path]) -> np.ndarray:
    """
    读取图像文件

    Args:
        file_path (Union[str, Path]): 图像文件路径

    Returns:
        np.ndarray: BGR图像

    Raises:
        ImageFileError: 文件不存在或无法解码为图像
    """
    file_path = Path(file_path)
    try:
        # 通过 imdecode 读取，支持非ASCII路径
        data = np.fromfile(str(file_path), dtype=np.uint8)
    except OSError as e:
        raise ImageFileError(f"无法读取图像文件 {file_path}: {e}", file_path) from e

    image = cv2.imdecode(data, cv2.IMREAD_COLOR) if data.size > 0 else None
    if image is None:
        raise ImageFileError(f"无法读取图像文件 {file_path}", file_path)
    return image


def save_image(image: np.ndarray, file_path: Union[str, Path]) -> None:
    """
    保存图像文件，格式由扩展名决定

    Args:
        image (np.ndarray): BGR或灰度图像
        file_path (Union[str, Path]): 目标路径

    Raises:
        ImageFileError: 格式不受支持或写入失败
    """
    file_path = Path(file_path)
    if not is_supported_image_file(file_path):
        raise ImageFileError(f"不支持的图像格式: {file_path.name}", file_path)
    image_format = get_image_format(file_path)

    try:
        ok, buffer = cv2.imencode(f".{image_format}", image)
    except cv2.error as e:
        raise ImageFileError(f"无法编码图像 {file_path}: {e}", file_path) from e
    if not ok:
        raise ImageFileError(f"无法编码图像 {file_path}", file_path)

    try:
        buffer.tofile(str(file_path))
    except OSError as e:
        raise ImageFileError(f"无法写入图像文件 {file_path}: {e}", file_path) from e

    logger.info(f"图像已保存: {file_path}")


def write_message(msg: str, width: int, height: int, file_path: Union[str, Path]) -> None:
    """
    把消息编码为二维码并写入图像文件

    Args:
        msg (str): 要编码的消息
        width (int): 图像宽度（像素）
        height (int): 图像高度（像素）
        file_path (Union[str, Path]): 目标路径，格式由扩展名决定

    Raises:
        EncodeError: 消息无法编码
        ImageFileError: 写入失败
    """
    save_image(encode_message(msg, width, height), file_path)


def read_message(file_path: Union[str, Path]) -> str:
    """
    读取二维码图像文件并解码

    Args:
        file_path (Union[str, Path]): 图像文件路径

    Returns:
        str: 解码得到的消息

    Raises:
        ImageFileError: 文件无法读取
        DecodeError: 图像中没有可解码的二维码
    """
    return decode_message(load_image(file_path))
