import json
import os
import tempfile
import unittest
from unittest.mock import patch

from agcbuilder.config import BuildSettings
from agcbuilder.dependency import AGC_ARCHIVE
from agcbuilder.errors import NativeBuildError, NoCompatibleToolchainError
from agcbuilder.link_plan import DynamicLib, ForceLoadArchive
from agcbuilder.orchestrator import run_build
from agcbuilder.platforms import MacOSLinkingStrategy, PlatformLinkingStrategy
from agcbuilder.toolchain import ResolvedToolchain


def _touch(path):
    os.makedirs(os.path.dirname(path), exist_ok=True)
    open(path, "w").close()
    return path


def _fake_bridge(config):
    return _touch(config.archive_path)


@patch('agcbuilder.orchestrator.compile_bridge', side_effect=_fake_bridge)
@patch('agcbuilder.bridge.run_shell_command', return_value=("", "", 0))
@patch('agcbuilder.orchestrator.logger')
class TestRunBuild(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = self._tmp.name
        _touch(os.path.join(self.root, "src", "agc_bridge.cpp"))
        self.settings = BuildSettings(
            root=self.root,
            system_dir=os.path.join(self.root, "no-system-agc"),
            environ={"PATH": "/usr/bin", "HOME": "/home/dev", "LD_PRELOAD": "/evil.so"},
        )

    def tearDown(self):
        self._tmp.cleanup()

    @patch('agcbuilder.native_builder.run_shell_command')
    def test_prebuilt_override_skips_native_build(self, mock_make, mock_logger, mock_bridge_run, mock_compile):
        override = os.path.join(self.root, "prebuilt")
        _touch(os.path.join(override, AGC_ARCHIVE))
        settings = BuildSettings(root=self.root, agc_dir=override, system_dir=self.settings.system_dir)

        result = run_build(settings, strategy=PlatformLinkingStrategy("x86_64"))

        mock_make.assert_not_called()
        self.assertEqual(result.source.kind, "override")
        self.assertEqual(result.native_artifact.path, os.path.join(override, AGC_ARCHIVE))
        self.assertIn(os.path.join(override, "bin"), [d.value for d in result.link_plan.directives])
        self.assertTrue(os.path.isfile(settings.link_plan_path))

    def test_vendored_sources_are_built_once(self, mock_logger, mock_bridge_run, mock_compile):
        vendored = os.path.join(self.root, "agc")
        _touch(os.path.join(vendored, "makefile"))

        def fake_make(command, **kwargs):
            _touch(os.path.join(vendored, AGC_ARCHIVE))
            return "", "", 0

        with patch('agcbuilder.native_builder.run_shell_command', side_effect=fake_make) as mock_make:
            first = run_build(self.settings, strategy=PlatformLinkingStrategy("x86_64"))
            second = run_build(self.settings, strategy=PlatformLinkingStrategy("x86_64"))

        mock_make.assert_called_once()
        env = mock_make.call_args.kwargs["env"]
        self.assertEqual(env, {"PATH": "/usr/bin", "HOME": "/home/dev"})
        self.assertEqual(first.native_artifact, second.native_artifact)
        with open(self.settings.link_plan_path) as f:
            written = json.load(f)
        self.assertIn("-lagc-bridge", " ".join(written["linker_args"]))

    def test_second_toolchain_candidate_is_used_everywhere(self, mock_logger, mock_bridge_run, mock_compile):
        vendored = os.path.join(self.root, "agc")
        _touch(os.path.join(vendored, "makefile"))
        runtime_dir = os.path.join(self.root, "gcc12", "lib", "gcc", "12")
        libstdcxx = _touch(os.path.join(runtime_dir, "libstdc++.a"))
        _touch(os.path.join(runtime_dir, "libgcc.a"))
        _touch(os.path.join(runtime_dir, "libatomic.a"))
        probed = []

        def probe(candidate):
            probed.append(candidate.identifier)
            if candidate.identifier != "12":
                return None
            return ResolvedToolchain(candidate, "/gcc12/bin/gcc-12", "/gcc12/bin/g++-12", runtime_dir=runtime_dir)

        def fake_make(command, **kwargs):
            _touch(os.path.join(vendored, AGC_ARCHIVE))
            return "", "", 0

        with patch('agcbuilder.platforms.run_shell_command', return_value=("", "", -1)), \
                patch('agcbuilder.native_builder.run_shell_command', side_effect=fake_make) as mock_make:
            result = run_build(self.settings, strategy=MacOSLinkingStrategy("arm64"), probe=probe)

        self.assertEqual(probed, ["13", "12"])
        self.assertEqual(result.toolchain.identifier, "12")
        self.assertEqual(mock_make.call_args.kwargs["env"]["CXX"], "/gcc12/bin/g++-12")
        self.assertEqual(mock_compile.call_args.args[0].compiler, "/gcc12/bin/g++-12")
        force_loaded = [d.path for d in result.link_plan.of_kind(ForceLoadArchive)]
        self.assertIn(libstdcxx, force_loaded)
        self.assertNotIn(DynamicLib("stdc++"), result.link_plan.directives)

    def test_no_toolchain_stops_before_building(self, mock_logger, mock_bridge_run, mock_compile):
        _touch(os.path.join(self.root, "agc", "makefile"))

        with patch('agcbuilder.native_builder.run_shell_command') as mock_make:
            with self.assertRaises(NoCompatibleToolchainError) as ctx:
                run_build(self.settings, strategy=MacOSLinkingStrategy("arm64"), probe=lambda candidate: None)

        self.assertIn("13, 12, 11", str(ctx.exception))
        mock_make.assert_not_called()
        mock_compile.assert_not_called()
        self.assertFalse(os.path.exists(self.settings.link_plan_path))

    def test_native_failure_stops_before_bridge(self, mock_logger, mock_bridge_run, mock_compile):
        _touch(os.path.join(self.root, "agc", "makefile"))

        with patch('agcbuilder.native_builder.run_shell_command', return_value=("boom\n", "", 2)):
            with self.assertRaises(NativeBuildError):
                run_build(self.settings, strategy=PlatformLinkingStrategy("x86_64"))

        mock_compile.assert_not_called()

    @patch('agcbuilder.native_builder.run_shell_command')
    def test_plan_only_builds_nothing(self, mock_make, mock_logger, mock_bridge_run, mock_compile):
        _touch(os.path.join(self.root, "agc", "makefile"))

        result = run_build(self.settings, strategy=PlatformLinkingStrategy("x86_64"), plan_only=True)

        mock_make.assert_not_called()
        mock_compile.assert_not_called()
        self.assertIsNone(result.link_plan_path)
        self.assertFalse(os.path.exists(self.settings.link_plan_path))
        self.assertEqual(result.bridge_archive, os.path.join(self.root, "build", "agc-bridge", "libagc-bridge.a"))


if __name__ == "__main__":
    unittest.main()
