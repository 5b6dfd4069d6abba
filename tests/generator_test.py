#!/usr/bin/env python3

from __future__ import annotations

import pathlib
import subprocess
import sys
import tempfile
import textwrap
import unittest

REPO_ROOT: pathlib.Path = pathlib.Path(__file__).resolve().parents[1]
GENERATOR_PATH: pathlib.Path = REPO_ROOT / "tools" / "enum_conversions_gen.py"


class GeneratorBehaviorTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls) -> None:
        if not GENERATOR_PATH.exists():
            raise RuntimeError(f"generator not found: {GENERATOR_PATH}")
        cls.generator = GENERATOR_PATH
        cls.repo_root = REPO_ROOT

    def run_gen(self, in_path: pathlib.Path, out_path: pathlib.Path, check: bool = False) -> subprocess.CompletedProcess[str]:
        cmd = [
            sys.executable,
            str(self.generator),
            "--in",
            str(in_path),
            "--out",
            str(out_path),
        ]
        if check:
            cmd.append("--check")
        return subprocess.run(cmd, cwd=self.repo_root, text=True, capture_output=True)

    def test_targeted_substitution_and_passthrough(self) -> None:
        source = textwrap.dedent(
            """
            use std::fmt::Debug;
            // #[derive(EnumConversions)] in comment should remain untouched
            static TOKEN: &str = "#[derive(EnumConversions)] in string";

            #[derive(Debug)]
            enum Passthrough {
                K(i32),
            }

            #[derive(Debug, EnumConversions)]
            pub enum Demo {
                A(i64),
                B(bool),
            }
            """
        ).strip() + "\n"

        with tempfile.TemporaryDirectory() as td:
            tmp = pathlib.Path(td)
            in_path = tmp / "demo.rs.in"
            out_path = tmp / "demo.rs"
            in_path.write_text(source, encoding="utf-8")

            result = self.run_gen(in_path, out_path)
            self.assertEqual(result.returncode, 0, msg=result.stderr)
            self.assertIn("generated:", result.stdout)

            generated = out_path.read_text(encoding="utf-8")
            self.assertTrue(generated.startswith("// enum-conversions-generated\n"))
            self.assertIn("enum Passthrough {", generated)
            self.assertIn("// #[derive(EnumConversions)] in comment should remain untouched", generated)
            self.assertIn('"#[derive(EnumConversions)] in string"', generated)
            self.assertIn("#[derive(Debug)]\npub enum Demo {", generated)
            self.assertIn("mod enum___conversion___Demo {", generated)
            self.assertIn("std::convert::From<i64> for Demo", generated)
            self.assertNotIn("Passthrough: variant_access_traits", generated)
            self.assertEqual(generated.count("mod enum___conversion___"), 1)

    def test_generated_impls_follow_the_enum(self) -> None:
        source = textwrap.dedent(
            """
            #[derive(EnumConversions)]
            enum Enum {
                A(i64),
                B(bool),
            }

            fn after() {}
            """
        ).strip() + "\n"

        with tempfile.TemporaryDirectory() as td:
            tmp = pathlib.Path(td)
            in_path = tmp / "enum.rs.in"
            out_path = tmp / "enum.rs"
            in_path.write_text(source, encoding="utf-8")

            result = self.run_gen(in_path, out_path)
            self.assertEqual(result.returncode, 0, msg=result.stderr)

            generated = out_path.read_text(encoding="utf-8")
            self.assertNotIn("#[derive(", generated)
            self.assertIn("\nenum Enum {", generated)
            enum_end = generated.index("}\n\n#[allow(non_snake_case, dead_code)]")
            self.assertLess(enum_end, generated.index("fn after() {}"))
            self.assertLess(generated.index("std::convert::From<bool> for Enum"), generated.index("fn after() {}"))
            self.assertIn("std::convert::TryFrom<Enum> for i64", generated)
            self.assertIn("std::convert::TryFrom<Enum> for bool", generated)

    def test_check_mode_reports_drift(self) -> None:
        source = textwrap.dedent(
            """
            #[derive(EnumConversions)]
            enum A {
                X(u8),
            }
            """
        ).strip() + "\n"

        with tempfile.TemporaryDirectory() as td:
            tmp = pathlib.Path(td)
            in_path = tmp / "a.rs.in"
            out_path = tmp / "a.rs"
            in_path.write_text(source, encoding="utf-8")

            missing = self.run_gen(in_path, out_path, check=True)
            self.assertNotEqual(missing.returncode, 0)
            self.assertIn("is missing", missing.stderr)

            first = self.run_gen(in_path, out_path)
            self.assertEqual(first.returncode, 0, msg=first.stderr)

            check_ok = self.run_gen(in_path, out_path, check=True)
            self.assertEqual(check_ok.returncode, 0, msg=check_ok.stderr)
            self.assertIn("up-to-date", check_ok.stdout)

            second = self.run_gen(in_path, out_path)
            self.assertEqual(second.returncode, 0, msg=second.stderr)
            self.assertIn("unchanged:", second.stdout)

            in_path.write_text(source + "// changed\n", encoding="utf-8")
            check_bad = self.run_gen(in_path, out_path, check=True)
            self.assertNotEqual(check_bad.returncode, 0)
            self.assertIn("out of date", check_bad.stderr)

    def test_unit_variant_rejected_with_location(self) -> None:
        source = textwrap.dedent(
            """
            #[derive(EnumConversions)]
            enum Bad {
                A(i64),
                Empty,
            }
            """
        ).strip() + "\n"

        with tempfile.TemporaryDirectory() as td:
            tmp = pathlib.Path(td)
            in_path = tmp / "bad.rs.in"
            out_path = tmp / "bad.rs"
            in_path.write_text(source, encoding="utf-8")

            result = self.run_gen(in_path, out_path)
            self.assertNotEqual(result.returncode, 0)
            self.assertIn("unit cases are not convertible", result.stderr)
            self.assertRegex(result.stderr, r"bad\.rs\.in:4:5: error:")
            self.assertFalse(out_path.exists())

    def test_struct_rejected(self) -> None:
        source = textwrap.dedent(
            """
            #[derive(EnumConversions)]
            struct Record {
                a: i64,
            }
            """
        ).strip() + "\n"

        with tempfile.TemporaryDirectory() as td:
            tmp = pathlib.Path(td)
            in_path = tmp / "record.rs.in"
            out_path = tmp / "record.rs"
            in_path.write_text(source, encoding="utf-8")

            result = self.run_gen(in_path, out_path)
            self.assertNotEqual(result.returncode, 0)
            self.assertIn("unsupported declaration kind, expected tagged union", result.stderr)
            self.assertRegex(result.stderr, r"record\.rs\.in:2:1: error:")

    def test_shared_payload_type_rejected(self) -> None:
        source = textwrap.dedent(
            """
            #[derive(EnumConversions)]
            enum Twice {
                A(Vec<u8>),
                B(Vec< u8 >),
            }
            """
        ).strip() + "\n"

        with tempfile.TemporaryDirectory() as td:
            tmp = pathlib.Path(td)
            in_path = tmp / "twice.rs.in"
            out_path = tmp / "twice.rs"
            in_path.write_text(source, encoding="utf-8")

            result = self.run_gen(in_path, out_path)
            self.assertNotEqual(result.returncode, 0)
            self.assertIn("variants 'A' and 'B' share payload type", result.stderr)

    def test_missing_input_reported(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            tmp = pathlib.Path(td)
            result = self.run_gen(tmp / "nope.rs.in", tmp / "nope.rs")
            self.assertNotEqual(result.returncode, 0)
            self.assertIn("input file does not exist", result.stderr)


if __name__ == "__main__":
    if len(sys.argv) == 3:
        GENERATOR_PATH = pathlib.Path(sys.argv[1]).resolve()
        REPO_ROOT = pathlib.Path(sys.argv[2]).resolve()
        sys.argv = [sys.argv[0]]
    unittest.main()
