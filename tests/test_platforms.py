import unittest
from unittest.mock import patch

from agcbuilder.platforms import MacOSLinkingStrategy, PlatformLinkingStrategy, select_platform_strategy


class TestSelectPlatformStrategy(unittest.TestCase):

    def test_darwin(self):
        strategy = select_platform_strategy("Darwin", "arm64")
        self.assertIsInstance(strategy, MacOSLinkingStrategy)
        self.assertTrue(strategy.requires_bounded_toolchain)
        self.assertEqual(strategy.system, "darwin")

    def test_linux(self):
        strategy = select_platform_strategy("Linux", "x86_64")
        self.assertIs(type(strategy), PlatformLinkingStrategy)
        self.assertFalse(strategy.requires_bounded_toolchain)
        self.assertEqual(strategy.default_cxx_runtime, "stdc++")

    def test_platform_hint(self):
        self.assertEqual(select_platform_strategy("Darwin", "arm64").platform_hint(), "arm8")
        self.assertIsNone(select_platform_strategy("Darwin", "x86_64").platform_hint())
        self.assertEqual(select_platform_strategy("Darwin", "x86_64", "avx2").platform_hint(), "avx2")
        self.assertIsNone(select_platform_strategy("Linux", "aarch64").platform_hint())

    def test_arch_flags(self):
        self.assertEqual(MacOSLinkingStrategy("arm64").bridge_arch_flags(), ["-march=armv8-a"])
        self.assertEqual(PlatformLinkingStrategy("aarch64").bridge_arch_flags(), [])


class TestMakeCommand(unittest.TestCase):

    @patch('agcbuilder.platforms.run_shell_command', return_value=("GNU Make 4.4.1\n", "", 0))
    def test_macos_prefers_gmake(self, mock_run):
        self.assertEqual(MacOSLinkingStrategy("arm64").make_command(), "gmake")
        mock_run.assert_called_once_with(["gmake", "--version"])

    @patch('agcbuilder.platforms.run_shell_command', return_value=("", "command not found: gmake", -1))
    def test_macos_without_gmake(self, mock_run):
        self.assertEqual(MacOSLinkingStrategy("x86_64").make_command(), "make")

    @patch('agcbuilder.platforms.run_shell_command')
    def test_linux_uses_make(self, mock_run):
        self.assertEqual(PlatformLinkingStrategy("x86_64").make_command(), "make")
        mock_run.assert_not_called()


class TestLinkerSyntax(unittest.TestCase):

    def test_force_load(self):
        self.assertEqual(MacOSLinkingStrategy("arm64").force_load_args("/gcc/libgcc.a"),
                         ["-Wl,-force_load,/gcc/libgcc.a"])
        self.assertEqual(PlatformLinkingStrategy("x86_64").force_load_args("/gcc/libgcc.a"),
                         ["-Wl,--whole-archive", "/gcc/libgcc.a", "-Wl,--no-whole-archive"])

    def test_shared_library_patterns(self):
        self.assertEqual(MacOSLinkingStrategy("arm64").shared_library_patterns("gcc_s.1"), ["libgcc_s.1.dylib"])
        self.assertEqual(PlatformLinkingStrategy("x86_64").shared_library_patterns("stdc++"),
                         ["libstdc++.so", "libstdc++.so.*"])


if __name__ == "__main__":
    unittest.main()
