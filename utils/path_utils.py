"""
文件路径管理工具

提供统一的文件路径解析、目录创建和图像文件格式判断功能。
"""

from pathlib import Path
from typing import Tuple, Union

# 定义项目根目录 (相对于此文件的位置)
PROJECT_ROOT = Path(__file__).resolve().parent.parent

# OpenCV 可读写的图像格式（扩展名，不含点号）
SUPPORTED_IMAGE_FORMATS: Tuple[str, ...] = ("png", "jpg", "jpeg", "bmp", "tif", "tiff", "webp")


class PathUtils:
    """文件路径管理工具类"""

    def __init__(self, base_dir: Union[str, Path] = PROJECT_ROOT):
        """
        初始化路径管理器

        Args:
            base_dir (Union[str, Path]): 相对路径的基准目录，默认为项目根目录
        """
        self.base_dir = Path(base_dir)

    def resolve(self, path: Union[str, Path]) -> Path:
        """
        将相对路径解析为基于基准目录的绝对路径

        Args:
            path (Union[str, Path]): 绝对路径或相对路径

        Returns:
            Path: 绝对路径
        """
        path_obj = Path(path).expanduser()
        if path_obj.is_absolute():
            return path_obj
        return self.base_dir / path_obj

    def ensure_dir_exists(self, path: Union[str, Path]) -> Path:
        """
        确保目录存在，如果不存在则创建

        Args:
            path (Union[str, Path]): 目录路径

        Returns:
            Path: 路径对象
        """
        path_obj = self.resolve(path)
        path_obj.mkdir(parents=True, exist_ok=True)
        return path_obj


def get_image_format(file_path: Union[str, Path]) -> str:
    """
    根据文件扩展名获取图像格式

    Args:
        file_path (Union[str, Path]): 图像文件路径

    Returns:
        str: 小写的格式名（如 "png"），没有扩展名时返回空字符串
    """
    return Path(file_path).suffix.lstrip('.').lower()


def is_supported_image_file(file_path: Union[str, Path]) -> bool:
    """
    判断文件扩展名是否为支持的图像格式

    Args:
        file_path (Union[str, Path]): 图像文件路径

    Returns:
        bool: 是否支持
    """
    return get_image_format(file_path) in SUPPORTED_IMAGE_FORMATS


def build_image_file_filter() -> str:
    """生成文件对话框使用的图像文件过滤器字符串"""
    patterns = " ".join(f"*.{fmt}" for fmt in SUPPORTED_IMAGE_FORMATS)
    return f"图像文件 ({patterns})"


# 全局路径管理器实例
path_manager = PathUtils()
