import json
import os
import shutil
import tempfile
import unittest

from gofault.common.util import read_binary_file, write_binary_file
from gofault.toolchain.overlay import Overlay, OverlayDescriptor


class TestOverlay(unittest.TestCase):

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp(prefix='gofault-test-')
        self.source_path = os.path.join(self.temp_dir, 'main.go')
        write_binary_file(self.source_path, b'package main\n')
        self.overlay = Overlay()
        super().setUp()

    def tearDown(self):
        self.overlay.remove_files()
        shutil.rmtree(self.temp_dir)
        super().tearDown()

    def test_read_falls_back_to_disk(self):
        self.assertEqual(b'package main\n', self.overlay.read(self.source_path))
        self.assertNotIn(self.source_path, self.overlay)

        self.overlay.update(self.source_path, b'package patched\n')
        self.assertEqual(b'package patched\n', self.overlay.read(self.source_path))
        self.assertEqual(b'package main\n', read_binary_file(self.source_path))

    def test_keys_are_absolute(self):
        relative = os.path.relpath(self.source_path)
        self.overlay.update(relative, b'x')
        self.assertEqual([self.source_path], list(self.overlay))
        self.assertEqual(b'x', self.overlay[self.source_path])

    def test_flush(self):
        self.overlay.update(self.source_path, b'package patched\n')
        descriptor_path = self.overlay.flush()

        with open(descriptor_path, 'rt', encoding='utf-8') as f:
            document = json.load(f)

        self.assertEqual([self.source_path], list(document['Replace']))
        replacement = document['Replace'][self.source_path]
        self.assertTrue(os.path.basename(replacement).startswith('gofault-'))
        self.assertEqual(b'package patched\n', read_binary_file(replacement))

        # Flushing again rewrites the same files with the latest content
        self.overlay.update(self.source_path, b'package again\n')
        self.assertEqual(descriptor_path, self.overlay.flush())
        self.assertEqual(replacement, self.overlay.descriptor.replace[self.source_path])
        self.assertEqual(b'package again\n', read_binary_file(replacement))

    def test_remove_files(self):
        self.overlay.update(self.source_path, b'package patched\n')
        descriptor_path = self.overlay.flush()
        replacement = self.overlay.descriptor.replace[self.source_path]

        self.overlay.remove_files()

        self.assertFalse(os.path.exists(descriptor_path))
        self.assertFalse(os.path.exists(replacement))
        self.assertTrue(os.path.exists(self.source_path))
        self.assertEqual('', self.overlay.descriptor_path)

    def test_descriptor_json(self):
        descriptor = OverlayDescriptor(replace={'/src/a.go': '/tmp/b.go'})
        self.assertEqual({'Replace': {'/src/a.go': '/tmp/b.go'}}, json.loads(descriptor.to_json()))

    def test_original_path_of_replacement(self):
        self.overlay.update(self.source_path, b'package patched\n')
        self.overlay.flush()
        replacement = self.overlay.descriptor.replace[self.source_path]

        self.assertEqual(self.source_path, self.overlay.original_path(replacement))
        self.assertEqual(self.source_path, self.overlay.original_path(os.path.relpath(replacement)))
        self.assertEqual(self.source_path, self.overlay.original_path(self.source_path))
        self.assertEqual('other.go', self.overlay.original_path('other.go'))
