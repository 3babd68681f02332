import os
import unittest

from gofault.toolchain.go import GoToolchain
from gofault.workflow.runner import Runner, RunnerState, split_run_args

BROKEN_OUTPUT = '# example.com/p\n./main.go:3:1: syntax error: non-declaration statement outside function body\n'


class FakeToolchain(GoToolchain):
    """Scripted build results, records every command"""

    def __init__(self, builds):
        super().__init__(go_command='go-fake', cwd='/src/p')
        self.builds = list(builds)
        self.commands = []
        self.executed = []

    def go(self, args):
        self.commands.append(args)
        return self.builds.pop(0)

    def execute(self, command):
        self.executed.append(command)
        return 3


class RecordingFixer:

    def __init__(self, overlay=None, path=''):
        self.overlay = overlay
        self.path = path
        self.calls = []

    def fix(self, *patterns):
        self.calls.append(list(patterns))
        if self.overlay is not None:
            self.overlay.update(self.path, b'package main\n')


class TestSplitRunArgs(unittest.TestCase):

    def test_source_files(self):
        self.assertEqual((['a.go', 'b.go'], ['x.go.txt', '-v']), split_run_args(['a.go', 'b.go', 'x.go.txt', '-v']))

    def test_package(self):
        self.assertEqual((['./cmd/app'], ['-v', 'b.go']), split_run_args(['./cmd/app', '-v', 'b.go']))

    def test_empty(self):
        self.assertEqual(([], []), split_run_args([]))


class TestRunner(unittest.TestCase):

    def test_given_up_runs_without_overlay(self):
        toolchain = FakeToolchain([(1, BROKEN_OUTPUT), (1, BROKEN_OUTPUT)])
        with Runner('build', False, ['.'], toolchain=toolchain) as runner:
            runner.fixer = RecordingFixer()

            self.assertEqual(RunnerState.GIVEN_UP, runner.prepare())
            self.assertEqual([['example.com/p']], runner.fixer.calls)
            self.assertEqual(2, len(toolchain.commands))

            self.assertEqual(3, runner.run())
            exe_path = runner.exe_path

        self.assertEqual([['go-fake', 'build', '.']], toolchain.executed)
        self.assertFalse(any('overlay' in arg for arg in toolchain.executed[0]))
        self.assertFalse(os.path.exists(exe_path))

    def test_unsupported_mode(self):
        with self.assertRaises(ValueError):
            Runner('install', False, ['.'], toolchain=FakeToolchain([]))

    def test_build_failure_without_packages(self):
        toolchain = FakeToolchain([(1, 'go: cannot find main module\n')])
        with Runner('test', False, ['./...'], toolchain=toolchain) as runner:
            self.assertEqual(RunnerState.GIVEN_UP, runner.prepare())
            runner.run()

        self.assertEqual([['go-fake', 'test', './...']], toolchain.executed)

    def test_command_line_files_are_fixed(self):
        toolchain = FakeToolchain([(1, '# command-line-arguments\n./main.go:4:2: undefined: x\n'), (0, '')])
        with Runner('run', False, ['main.go', 'util.go', 'arg1', 'arg2'], toolchain=toolchain) as runner:
            runner.fixer = RecordingFixer(runner.overlay, '/src/p/main.go')

            self.assertEqual(RunnerState.BUILT, runner.prepare())
            self.assertEqual([['main.go', 'util.go']], runner.fixer.calls)

            first, second = toolchain.commands
            self.assertEqual(['build', '-o', runner.exe_path, 'main.go', 'util.go'], first)
            self.assertEqual(['build', '-overlay', runner.overlay_path, '-o', runner.exe_path, 'main.go', 'util.go'], second)

            runner.run()
            self.assertEqual([[runner.exe_path, 'arg1', 'arg2']], toolchain.executed)
            overlay_path = runner.overlay_path

        self.assertFalse(os.path.exists(overlay_path))

    def test_test_mode_uses_overlay(self):
        toolchain = FakeToolchain([(1, '# example.com/p [example.com/p.test]\n./p_test.go:4:2: undefined: x\n'), (0, '')])
        with Runner('test', False, ['.', '-run', 'TestX'], toolchain=toolchain) as runner:
            runner.fixer = RecordingFixer(runner.overlay, '/src/p/p_test.go')

            self.assertEqual(RunnerState.BUILT, runner.prepare())
            self.assertEqual([['example.com/p']], runner.fixer.calls)
            self.assertEqual(['test', '-vet=off', '-c', '-o', runner.exe_path, '.', '-run', 'TestX'], toolchain.commands[0])

            runner.run()
            self.assertEqual([['go-fake', 'test', '-vet=off', f'-overlay={runner.overlay_path}', '.', '-run', 'TestX']], toolchain.executed)

    def test_built_without_fixes(self):
        toolchain = FakeToolchain([(0, '')])
        with Runner('build', False, ['./cmd/app'], toolchain=toolchain) as runner:
            self.assertEqual(RunnerState.BUILT, runner.prepare())
            runner.run()

        self.assertEqual([['go-fake', 'build', './cmd/app']], toolchain.executed)

    def test_verbose_keeps_temporary_files(self):
        toolchain = FakeToolchain([(0, '')])
        with Runner('build', True, ['.'], toolchain=toolchain) as runner:
            runner.prepare()
            exe_path = runner.exe_path

        try:
            self.assertTrue(os.path.exists(exe_path))
        finally:
            os.remove(exe_path)
