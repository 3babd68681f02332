import json
import os
import shutil
import tempfile
import unittest
from unittest.mock import patch

from gofault.common.util import write_binary_file
from gofault.fixer.package_fixer import PackageFixer, map_generated_position
from gofault.tests.data import TWO_UNDEFINED_GO, UNUSED_VARIABLE_GO, MALFORMED_LITERAL_GO
from gofault.toolchain.diagnostics import parse_compile_errors
from gofault.toolchain.go import GoToolchain, PackageInfo
from gofault.toolchain.overlay import Overlay


class FakeToolchain(GoToolchain):
    """Lists a single package and reports scripted build output, one per check

    {replacement} in the output stands for the overlay's replacement file of main.go,
    the compiler reports errors against that file once main.go is patched.

    """

    def __init__(self, project_dir: str, outputs):
        super().__init__(go_command='go-fake', cwd=project_dir)
        self.outputs = list(outputs)
        self.checks = []

    def list_packages(self, patterns, *, tests=False, overlay_path=''):
        return [PackageInfo(ImportPath='example.com/p', Dir=self.cwd, GoFiles=['main.go'])]

    def check(self, patterns, *, tests=False, overlay_path=''):
        self.checks.append(overlay_path)
        output = self.outputs.pop(0) if self.outputs else ''
        if overlay_path:
            with open(overlay_path, 'rt', encoding='utf-8') as f:
                replace = json.load(f)['Replace']
            replacement = replace.get(os.path.join(self.cwd, 'main.go'))
            if replacement is not None:
                output = output.replace('{replacement}', os.path.relpath(replacement, self.cwd))
        return parse_compile_errors(output)

    def cache_dir(self):
        return os.path.join(self.cwd, 'cache')


class TestMapGeneratedPosition(unittest.TestCase):

    def test_line_directive(self):
        content = b'package p\n//line /src/a.go:10\nfoo()\nbar()\n'
        self.assertEqual(('/src/a.go', 10, 3), map_generated_position(content, 3, 3))
        self.assertEqual(('/src/a.go', 11, 2), map_generated_position(content, 4, 2))

    def test_line_directive_with_column(self):
        content = b'//line /src/a.go:10:5\nfoo()\n'
        self.assertEqual(('/src/a.go', 10, 6), map_generated_position(content, 2, 2))

    def test_no_directive(self):
        self.assertIsNone(map_generated_position(b'package p\n\nfunc f() {}\n', 3, 1))


class TestPackageFixer(unittest.TestCase):

    def setUp(self):
        self.project_dir = tempfile.mkdtemp(prefix='gofault-test-')
        self.main_path = os.path.join(self.project_dir, 'main.go')
        self.overlay = Overlay()
        super().setUp()

    def tearDown(self):
        self.overlay.remove_files()
        shutil.rmtree(self.project_dir)
        super().tearDown()

    def fixer(self, content: bytes, *outputs: str) -> PackageFixer:
        write_binary_file(self.main_path, content)
        self.toolchain = FakeToolchain(self.project_dir, outputs)
        return PackageFixer(self.toolchain, self.overlay)

    @patch('gofault.fixer.package_fixer.echo')
    def test_errors_are_fixed_bottom_up(self, echo):
        fixer = self.fixer(
            TWO_UNDEFINED_GO,
            '# example.com/p\n./main.go:4:7: undefined: undefined1\n./main.go:5:7: undefined: undefined2\n',
        )
        fixer.fix('.')

        expected = TWO_UNDEFINED_GO.replace(
            b'\ta := undefined1\n\tb := undefined2\n\tprintln(a, b)\n}',
            b'\tpanic("undefined: undefined1")\n\n\n}',
        )
        self.assertEqual(expected, self.overlay[self.main_path])
        self.assertEqual(expected.count(b'\n'), TWO_UNDEFINED_GO.count(b'\n'))

        self.assertEqual(
            ['./main.go:5:7: undefined: undefined2', './main.go:4:7: undefined: undefined1'],
            [call.args[0] for call in echo.call_args_list],
        )

        # The second pass saw the overlay and no more errors
        self.assertEqual(2, len(self.toolchain.checks))
        self.assertEqual('', self.toolchain.checks[0])
        self.assertTrue(self.toolchain.checks[1])

    @patch('gofault.fixer.package_fixer.echo')
    def test_error_in_patched_range_is_skipped(self, echo):
        fixer = self.fixer(
            TWO_UNDEFINED_GO,
            '# example.com/p\n./main.go:6:10: undefined: c\n./main.go:6:13: undefined: d\n',
        )
        fixer.fix('.')

        self.assertEqual(1, echo.call_count)
        self.assertIn(b'panic("undefined: d")', self.overlay[self.main_path])
        self.assertNotIn(b'undefined: c', self.overlay[self.main_path])

    @patch('gofault.fixer.package_fixer.echo')
    def test_structural_fixes_over_passes(self, echo):
        fixer = self.fixer(
            UNUSED_VARIABLE_GO,
            '# example.com/p\n./main.go:4:2: declared and not used: x\n',
            '# example.com/p\n{replacement}:4:4: no new variables on left side of :=\n',
        )
        fixer.fix('.')

        self.assertEqual(UNUSED_VARIABLE_GO.replace(b'x := 1', b'_ = 1'), self.overlay[self.main_path])
        self.assertEqual(3, len(self.toolchain.checks))
        echo.assert_not_called()

    @patch('gofault.fixer.package_fixer.echo')
    def test_valid_source_is_not_patched(self, echo):
        fixer = self.fixer(UNUSED_VARIABLE_GO.replace(b'x := 1', b'println(1)'))
        fixer.fix('.')

        self.assertEqual(0, len(self.overlay))
        self.assertEqual(1, len(self.toolchain.checks))
        echo.assert_not_called()

    @patch('gofault.fixer.package_fixer.echo')
    def test_unfixable_error(self, echo):
        fixer = self.fixer(
            UNUSED_VARIABLE_GO,
            '# example.com/p\n./main.go:1:1: some error before any function\n',
        )
        fixer.fix('.')

        self.assertEqual(0, len(self.overlay))
        self.assertEqual(1, len(self.toolchain.checks))

    @patch('gofault.fixer.package_fixer.echo')
    def test_unreadable_path_is_skipped(self, echo):
        fixer = self.fixer(UNUSED_VARIABLE_GO, '# example.com/p\n./missing.go:3:1: undefined: y\n')
        fixer.fix('.')

        self.assertEqual(0, len(self.overlay))
        echo.assert_not_called()

    @patch('gofault.fixer.package_fixer.echo')
    def test_generated_source_is_mapped(self, echo):
        cache_dir = os.path.join(self.project_dir, 'cache')
        os.makedirs(cache_dir)
        generated_path = os.path.join(cache_dir, 'main.cgo1.go')
        write_binary_file(generated_path, b'// Code generated by cmd/cgo; DO NOT EDIT.\n\n//line ' + self.main_path.encode() + b':1:1\npackage main\n\nfunc main() {\n\tx := 1\n}\n')

        fixer = self.fixer(UNUSED_VARIABLE_GO, f'# example.com/p\n{generated_path}:7:2: declared and not used: x\n')
        fixer.fix('.')

        self.assertEqual(UNUSED_VARIABLE_GO.replace(b'x := 1', b'_ := 1'), self.overlay[self.main_path])
        self.assertEqual(2, len(self.toolchain.checks))

    @patch('gofault.fixer.package_fixer.echo')
    def test_errors_in_replacement_file_fix_the_original(self, echo):
        fixer = self.fixer(
            TWO_UNDEFINED_GO,
            '# example.com/p\n./main.go:5:7: undefined: undefined2\n',
            '# example.com/p\n{replacement}:4:7: undefined: undefined1\n',
        )
        fixer.fix('.')

        self.assertEqual([self.main_path], list(self.overlay))
        self.assertIn(b'\tpanic("undefined: undefined1")\n\n\n}', self.overlay[self.main_path])
        self.assertEqual(
            ['./main.go:5:7: undefined: undefined2', 'main.go:4:7: undefined: undefined1'],
            [call.args[0] for call in echo.call_args_list],
        )
        self.assertEqual(3, len(self.toolchain.checks))

    @patch('gofault.fixer.fixpoint_parser.echo')
    @patch('gofault.fixer.package_fixer.echo')
    def test_syntax_error_keeps_the_compiler_message(self, echo, fixpoint_echo):
        fixer = self.fixer(
            MALFORMED_LITERAL_GO,
            '# example.com/p\n./main.go:5:28: hexadecimal literal has no digits\n',
            '# example.com/p\n{replacement}:3:8: "fmt" imported and not used\n',
        )
        fixer.fix('.')

        self.assertEqual(
            b'package main\n\nimport _ "fmt"\n\nfunc main(){ panic("hexadecimal literal has no digits")}\n',
            self.overlay[self.main_path],
        )
        fixpoint_echo.assert_called_once_with('./main.go:5:28: hexadecimal literal has no digits')
        echo.assert_not_called()
