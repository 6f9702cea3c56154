import os
import tempfile
import unittest
from unittest.mock import patch

from agcbuilder import config
from agcbuilder.errors import ConfigurationError


@patch('agcbuilder.config.logger')
class TestConfigFile(unittest.TestCase):

    def test_missing_file_is_empty(self, mock_logger):
        with tempfile.TemporaryDirectory() as tmp:
            self.assertEqual(config.load_config(tmp), {})

    def test_save_then_load(self, mock_logger):
        with tempfile.TemporaryDirectory() as tmp:
            self.assertTrue(config.save_config({"agc": {"jobs": 4}}, tmp))
            self.assertEqual(config.load_config(tmp), {"agc": {"jobs": 4}})

    def test_malformed_file(self, mock_logger):
        with tempfile.TemporaryDirectory() as tmp:
            with open(os.path.join(tmp, config.CONFIG_FILE), "w") as f:
                f.write("[agc\njobs = ")
            with self.assertRaises(ConfigurationError):
                config.load_config(tmp)


class TestSettingsFromConfig(unittest.TestCase):

    def test_defaults(self):
        settings = config.settings_from_config({}, root="/project", environ={})

        self.assertIsNone(settings.agc_dir)
        self.assertEqual(settings.vendored_path, "/project/agc")
        self.assertEqual(settings.toolchain_versions, ("13", "12", "11"))
        self.assertEqual(settings.tag, "v3.2.1")
        self.assertEqual(settings.missing_runtime, "fallback")
        self.assertEqual(settings.link_plan_path, "/project/build/agc-link-plan.json")

    def test_environment_overrides_file(self):
        conf = {
            "agc": {"dir": "from-file", "platform": "avx2"},
            "toolchain": {"cxx": "g++-12"},
            "link": {"missing_runtime": "fallback"},
        }
        environ = {
            "AGC_DIR": "/opt/agc",
            "AGC_CXX": "g++-13",
            "AGC_PLATFORM": "arm8",
            "AGC_MISSING_RUNTIME": "error",
        }

        settings = config.settings_from_config(conf, root="/project", environ=environ)

        self.assertEqual(settings.agc_dir, "/opt/agc")
        self.assertEqual(settings.cxx, "g++-13")
        self.assertEqual(settings.platform_hint, "arm8")
        self.assertEqual(settings.missing_runtime, "error")

    def test_empty_environment_values_are_ignored(self):
        settings = config.settings_from_config({"agc": {"dir": "vendor/agc"}}, root="/p", environ={"AGC_DIR": " "})
        self.assertEqual(settings.agc_dir, "vendor/agc")

    def test_file_values(self):
        conf = {
            "agc": {"vendored_dir": "third_party/agc", "jobs": 8, "tag": "v3.1"},
            "toolchain": {"versions": [12, 11]},
            "bridge": {"sources": "bridge.cpp", "std": "c++2a", "pic": False},
        }
        settings = config.settings_from_config(conf, root="/p", environ={})

        self.assertEqual(settings.vendored_path, "/p/third_party/agc")
        self.assertEqual(settings.jobs, 8)
        self.assertEqual(settings.tag, "v3.1")
        self.assertEqual(settings.toolchain_versions, ("12", "11"))
        self.assertEqual(settings.bridge_sources, ("bridge.cpp",))
        self.assertEqual(settings.cxx_std, "c++2a")
        self.assertFalse(settings.pic)

    def test_invalid_values(self):
        for conf in (
            {"agc": {"jobs": -1}},
            {"agc": {"jobs": "many"}},
            {"toolchain": {"versions": []}},
            {"toolchain": {"versions": "13"}},
            {"link": {"missing_runtime": "ignore"}},
            {"agc": "not a table"},
        ):
            with self.assertRaises(ConfigurationError, msg=repr(conf)):
                config.settings_from_config(conf, root="/p", environ={})

    def test_subprocess_environment_is_allow_listed(self):
        environ = {"PATH": "/usr/bin", "HOME": "/home/dev", "CXXFLAGS": "-O0", "DYLD_LIBRARY_PATH": "/x"}
        settings = config.settings_from_config({}, root="/p", environ=environ)

        self.assertEqual(settings.subprocess_environment(), {"PATH": "/usr/bin", "HOME": "/home/dev"})

    def test_environment_is_snapshotted(self):
        environ = {"PATH": "/usr/bin"}
        settings = config.settings_from_config({}, root="/p", environ=environ)
        environ["PATH"] = "/elsewhere"
        self.assertEqual(settings.environ["PATH"], "/usr/bin")

    def test_with_overrides(self):
        settings = config.settings_from_config({}, root="/p", environ={})
        changed = config.with_overrides(settings, jobs=2)
        self.assertEqual(changed.jobs, 2)
        self.assertEqual(settings.jobs, 0)


if __name__ == "__main__":
    unittest.main()
