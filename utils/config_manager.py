"""
配置管理器

负责读取和管理项目配置文件。
"""

import copy
import yaml
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union
from utils.logger import get_logger


# 默认配置，配置文件缺失或缺少某项时使用
DEFAULT_CONFIG: Dict[str, Any] = {
    'camera': {
        'index': 0,
        'refresh_interval_ms': 100,
        'max_empty_frames': 50,
        'join_timeout_s': 2.0,
        'resolution': {'width': 640, 'height': 480},
        'buffer_size': 1
    },
    'qr': {
        'image_width': 640,
        'image_height': 480,
        'error_correction': 'L',
        'border': 4
    },
    'ui': {
        'title': 'QR Code Application',
        'border_size': 20
    },
    'logging': {
        'level': 'INFO',
        'file_enabled': False,
        'file_path': 'logs'
    }
}


def _is_int_at_least(minimum: int) -> Callable[[Any], bool]:
    return lambda value: isinstance(value, int) and not isinstance(value, bool) and value >= minimum


def _is_positive_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0


def _is_resolution(value: Any) -> bool:
    return (isinstance(value, dict)
            and _is_int_at_least(1)(value.get('width'))
            and _is_int_at_least(1)(value.get('height')))


# 各配置段中需要校验的键，值不合法时使用默认值
SETTING_RULES: Dict[str, Dict[str, Callable[[Any], bool]]] = {
    'camera': {
        'index': _is_int_at_least(0),
        'refresh_interval_ms': _is_positive_number,
        'max_empty_frames': _is_int_at_least(0),
        'join_timeout_s': _is_positive_number,
        'resolution': _is_resolution,
        'buffer_size': _is_int_at_least(1)
    },
    'qr': {
        'image_width': _is_int_at_least(1),
        'image_height': _is_int_at_least(1),
        'error_correction': lambda value: str(value).upper() in ('L', 'M', 'Q', 'H'),
        'border': _is_int_at_least(0)
    },
    'ui': {
        'border_size': _is_int_at_least(0)
    }
}


class ConfigManager:
    """配置管理器"""

    def __init__(self, config_path: Optional[Union[str, Path]] = None):
        """
        初始化配置管理器

        Args:
            config_path (Optional[Union[str, Path]]): 配置文件路径，如果为None则使用默认路径
        """
        self.logger = get_logger("config_manager")

        # 确定配置文件路径
        if config_path is None:
            # 默认配置文件路径
            project_root = Path(__file__).parent.parent
            self.config_path = project_root / "config" / "config.yaml"
        else:
            self.config_path = Path(config_path)

        self.config_data: Dict[str, Any] = {}
        self.load_config()

    def load_config(self) -> bool:
        """
        加载配置文件

        Returns:
            bool: 是否成功加载
        """
        try:
            if not self.config_path.exists():
                self.logger.warning(f"配置文件不存在: {self.config_path}")
                self._create_default_config()
                return False

            with open(self.config_path, 'r', encoding='utf-8') as f:
                self.config_data = yaml.safe_load(f) or {}

            self.logger.info(f"成功加载配置文件: {self.config_path}")
            return True

        except (OSError, yaml.YAMLError) as e:
            self.logger.error(f"加载配置文件失败: {e}")
            self.config_data = copy.deepcopy(DEFAULT_CONFIG)
            return False

    def save_config(self) -> bool:
        """
        保存配置文件

        Returns:
            bool: 是否成功保存
        """
        try:
            # 确保配置目录存在
            self.config_path.parent.mkdir(parents=True, exist_ok=True)

            with open(self.config_path, 'w', encoding='utf-8') as f:
                yaml.dump(self.config_data, f, default_flow_style=False,
                          allow_unicode=True, indent=2, sort_keys=False)

            self.logger.info(f"成功保存配置文件: {self.config_path}")
            return True

        except (OSError, yaml.YAMLError) as e:
            self.logger.error(f"保存配置文件失败: {e}")
            return False

    def _create_default_config(self):
        """创建默认配置"""
        self.config_data = copy.deepcopy(DEFAULT_CONFIG)

        # 保存默认配置
        self.save_config()

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        获取配置值

        Args:
            key_path (str): 配置键路径，使用点号分隔，如 "camera.index"
            default (Any): 默认值

        Returns:
            Any: 配置值
        """
        keys = key_path.split('.')
        value = self.config_data

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value

    def set(self, key_path: str, value: Any) -> bool:
        """
        设置配置值

        Args:
            key_path (str): 配置键路径，使用点号分隔
            value (Any): 配置值

        Returns:
            bool: 是否成功设置
        """
        keys = key_path.split('.')
        current = self.config_data

        # 导航到最后一级的父节点
        for key in keys[:-1]:
            if key not in current:
                current[key] = {}
            current = current[key]
            if not isinstance(current, dict):
                self.logger.error(f"设置配置值失败: {key_path} 路径上的 {key} 不是字典")
                return False

        # 设置值
        current[keys[-1]] = value
        return True

    def _get_section(self, section: str) -> Dict[str, Any]:
        """
        获取配置段：缺失的键用默认值补齐，不合法的值替换为默认值并记录警告

        Args:
            section (str): 配置段名称

        Returns:
            Dict[str, Any]: 配置段字典（副本，修改不影响配置）
        """
        defaults = DEFAULT_CONFIG.get(section, {})
        settings = copy.deepcopy(defaults)
        loaded = self.get(section, {})
        if isinstance(loaded, dict):
            settings.update(copy.deepcopy(loaded))

        for key, is_valid in SETTING_RULES.get(section, {}).items():
            value = settings.get(key)
            if not is_valid(value):
                self.logger.warning(f"配置项 {section}.{key} 的值无效: {value!r}，"
                                    f"使用默认值 {defaults[key]!r}")
                settings[key] = copy.deepcopy(defaults[key])

        return settings

    def get_camera_settings(self) -> Dict[str, Any]:
        """
        获取摄像头设置

        Returns:
            Dict[str, Any]: 设备索引、采集周期、空帧报警阈值、分辨率等
        """
        return self._get_section('camera')

    def get_qr_settings(self) -> Dict[str, Any]:
        """
        获取二维码编码设置

        Returns:
            Dict[str, Any]: 图像尺寸、纠错等级、静区宽度
        """
        return self._get_section('qr')

    def get_ui_settings(self) -> Dict[str, Any]:
        """获取界面设置"""
        return self._get_section('ui')

    def get_logging_settings(self) -> Dict[str, Any]:
        """获取日志设置"""
        return self._get_section('logging')


# 全局配置管理器实例
_config_manager = None

def get_config_manager() -> ConfigManager:
    """
    获取全局配置管理器实例

    Returns:
        ConfigManager: 配置管理器实例
    """
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager


def reset_config_manager(config_path: Optional[Union[str, Path]] = None) -> ConfigManager:
    """
    使用指定的配置文件重新创建全局配置管理器

    Args:
        config_path (Optional[Union[str, Path]]): 配置文件路径，None表示默认路径

    Returns:
        ConfigManager: 新的配置管理器实例
    """
    global _config_manager
    _config_manager = ConfigManager(config_path)
    return _config_manager
