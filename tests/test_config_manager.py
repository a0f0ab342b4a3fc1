"""Tests for the YAML configuration manager."""

import yaml

import utils.config_manager as config_manager_module
from utils.config_manager import DEFAULT_CONFIG, ConfigManager, get_config_manager, reset_config_manager


class TestConfigManager:
    """配置文件的读取、保存和访问。"""

    def test_missing_file_creates_defaults(self, tmp_path):
        """配置文件不存在时写入默认配置。"""
        path = tmp_path / "conf" / "config.yaml"

        manager = ConfigManager(path)

        assert path.exists()
        assert manager.config_data == DEFAULT_CONFIG
        with open(path, 'r', encoding='utf-8') as f:
            assert yaml.safe_load(f) == DEFAULT_CONFIG

    def test_load_existing_file(self, tmp_path):
        """读取已有的配置文件。"""
        path = tmp_path / "config.yaml"
        path.write_text("camera:\n  index: 3\n  refresh_interval_ms: 40\n", encoding="utf-8")

        manager = ConfigManager(path)

        assert manager.get('camera.index') == 3
        assert manager.get('camera.refresh_interval_ms') == 40

    def test_invalid_yaml_falls_back_to_defaults(self, tmp_path):
        """YAML 格式错误时使用默认配置。"""
        path = tmp_path / "config.yaml"
        path.write_text("camera: [unclosed\n", encoding="utf-8")

        manager = ConfigManager(path)

        assert not manager.load_config()
        assert manager.get('camera.index') == 0

    def test_empty_file(self, tmp_path):
        """空配置文件得到空配置，分段设置仍有默认值。"""
        path = tmp_path / "config.yaml"
        path.write_text("", encoding="utf-8")

        manager = ConfigManager(path)

        assert manager.config_data == {}
        assert manager.get_camera_settings()['refresh_interval_ms'] == 100

    def test_get_with_default(self, tmp_path):
        """缺失的键返回默认值。"""
        manager = ConfigManager(tmp_path / "config.yaml")

        assert manager.get('camera.missing', 'fallback') == 'fallback'
        assert manager.get('camera.index.deeper') is None

    def test_set_creates_nested_keys(self, tmp_path):
        """设置值时自动创建中间层级。"""
        manager = ConfigManager(tmp_path / "config.yaml")

        assert manager.set('extra.section.value', 5)
        assert manager.get('extra.section.value') == 5

    def test_set_through_non_dict_fails(self, tmp_path):
        """路径上存在非字典值时设置失败。"""
        manager = ConfigManager(tmp_path / "config.yaml")

        assert not manager.set('camera.index.value', 1)
        assert manager.get('camera.index') == 0

    def test_save_and_reload(self, tmp_path):
        """保存后重新加载得到相同的值。"""
        path = tmp_path / "config.yaml"
        manager = ConfigManager(path)
        manager.set('qr.error_correction', 'Q')

        assert manager.save_config()

        assert ConfigManager(path).get('qr.error_correction') == 'Q'

    def test_sections_merge_defaults(self, tmp_path):
        """分段设置用默认值补齐缺失的键，且不影响默认配置。"""
        path = tmp_path / "config.yaml"
        path.write_text("qr:\n  image_width: 320\n", encoding="utf-8")
        manager = ConfigManager(path)

        qr_settings = manager.get_qr_settings()
        qr_settings['border'] = 99

        assert qr_settings['image_width'] == 320
        assert qr_settings['image_height'] == 480
        assert DEFAULT_CONFIG['qr']['border'] == 4
        assert manager.get_ui_settings()['title'] == 'QR Code Application'
        assert manager.get_logging_settings()['level'] == 'INFO'

    def test_invalid_values_replaced_by_defaults(self, tmp_path):
        """不合法的设置值替换为默认值，合法的值保留。"""
        path = tmp_path / "config.yaml"
        path.write_text(
            "camera:\n"
            "  index: 1\n"
            "  refresh_interval_ms: -5\n"
            "  max_empty_frames: many\n"
            "  resolution: {width: 0, height: 480}\n"
            "qr:\n"
            "  error_correction: h\n"
            "  border: true\n",
            encoding="utf-8"
        )
        manager = ConfigManager(path)

        camera = manager.get_camera_settings()
        qr_settings = manager.get_qr_settings()

        assert camera['index'] == 1
        assert camera['refresh_interval_ms'] == 100
        assert camera['max_empty_frames'] == 50
        assert camera['resolution'] == {'width': 640, 'height': 480}
        assert qr_settings['error_correction'] == 'h'
        assert qr_settings['border'] == 4


class TestGlobalConfigManager:
    """全局配置管理器实例。"""

    def test_get_config_manager_returns_same_instance(self, isolated_config):
        """多次获取得到同一个实例。"""
        assert get_config_manager() is isolated_config
        assert get_config_manager() is get_config_manager()

    def test_reset_config_manager(self, tmp_path):
        """使用指定文件重新创建全局实例。"""
        path = tmp_path / "other.yaml"
        path.write_text("camera:\n  index: 7\n", encoding="utf-8")

        manager = reset_config_manager(path)

        assert config_manager_module._config_manager is manager
        assert get_config_manager().get('camera.index') == 7
