"""
retikit command line tests: exit codes, outputs and error messages.
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
from reti_asm.wordio import pack_words, read_word_file
import retikit


@pytest.fixture
def program(tmp_path):
    src = tmp_path / "prog.s"
    src.write_text("LOADI ACC 0x2A\nSTORE 0\n", encoding="utf-8")
    return src


class TestAsmCommand:

    def test_assemble_to_file(self, program, tmp_path, capsys):
        out = tmp_path / "prog.bin"
        assert retikit.main(["asm", str(program), "-o", str(out)]) == 0
        assert read_word_file(out) == [0x7300002A, 0x80000000]
        assert "Assembled 2 words" in capsys.readouterr().err

    def test_listing(self, program, capsys):
        assert retikit.main(["asm", str(program), "--listing"]) == 0
        assert "00000000  7300002a  LOADI ACC 0x2A" in capsys.readouterr().out

    def test_parse_error(self, tmp_path, capsys):
        src = tmp_path / "bad.s"
        src.write_text("NOP\nADDI ACC 99999999\n", encoding="utf-8")
        assert retikit.main(["asm", str(src), "-o", str(tmp_path / "bad.bin")]) == 1
        err = capsys.readouterr().err
        assert err.startswith(f"retikit: parse error: at line 2 in '{src}':")
        assert "out of range" in err
        assert not (tmp_path / "bad.bin").exists()

    def test_undecodable_source(self, tmp_path, capsys):
        src = tmp_path / "bad.s"
        src.write_bytes(b"NOP\n\xff\xfe\n")
        assert retikit.main(["asm", str(src), "-o", str(tmp_path / "bad.bin")]) == 1
        err = capsys.readouterr().err
        assert err.startswith(f"retikit: parse error: at line 2 in '{src}':")
        assert "0xff" in err
        assert "Traceback" not in err
        assert not (tmp_path / "bad.bin").exists()

    def test_missing_input(self, tmp_path, capsys):
        assert retikit.main(["asm", str(tmp_path / "nope.s"), "-o", str(tmp_path / "x.bin")]) == 1
        assert capsys.readouterr().err.startswith("retikit: io error:")


class TestDisasmCommand:

    def test_report(self, tmp_path, capsys):
        code = tmp_path / "prog.bin"
        code.write_bytes(pack_words([0x7300002A, 0x00000000]))
        assert retikit.main(["disasm", str(code)]) == 0
        lines = capsys.readouterr().out.splitlines()
        assert lines == [
            "LOADI ACC 42".ljust(21) + " ; 00000000 7300002a",
            "; ILLEGAL".ljust(21) + " ; 00000001 00000000",
        ]

    def test_report_to_file(self, tmp_path):
        code = tmp_path / "prog.bin"
        code.write_bytes(pack_words([0xC0000000]))
        out = tmp_path / "prog.txt"
        assert retikit.main(["disasm", str(code), "-o", str(out)]) == 0
        assert out.read_text(encoding="utf-8") == "NOP".ljust(21) + " ; 00000000 c0000000\n"

    def test_truncated_input(self, tmp_path, capsys):
        code = tmp_path / "short.bin"
        code.write_bytes(b'\x00\x00\x00\xc0\x01')
        assert retikit.main(["disasm", str(code)]) == 1
        err = capsys.readouterr().err
        assert err.startswith("retikit: format error: at word 1 byte 5")
        assert "incomplete word" in err


class TestEmuCommand:

    def _code(self, tmp_path, words):
        path = tmp_path / "code.bin"
        path.write_bytes(pack_words(words))
        return path

    def test_run_and_dump(self, tmp_path, capsys):
        code = self._code(tmp_path, [0x7300002A, 0x80000000])
        assert retikit.main(["emu", str(code)]) == 0
        assert capsys.readouterr().out.splitlines() == ["00000000  2a 00 00 00  *..."]

    def test_verbose_dump_with_data(self, tmp_path, capsys):
        code = self._code(tmp_path, [0xC0000000])
        data = tmp_path / "data.bin"
        data.write_bytes(pack_words([0xFFFFFFFF]))
        assert retikit.main(["emu", str(code), str(data), "--verbose"]) == 0
        out = capsys.readouterr().out
        assert out.rstrip("\n").endswith("4294967295           -1")

    def test_dump_binary(self, tmp_path):
        code = self._code(tmp_path, [0x7300002A, 0x80000002])
        out = tmp_path / "final.bin"
        assert retikit.main(["emu", str(code), "--dump-binary", str(out)]) == 0
        assert read_word_file(out) == [0, 0, 0x2A]

    def test_illegal_instruction_fails(self, tmp_path, capsys):
        code = self._code(tmp_path, [0x00000000])
        assert retikit.main(["emu", str(code)]) == 1
        err = capsys.readouterr().err
        assert "retikit: emulator error: illegal instruction 0x00000000" in err

    def test_strict_uninitialized_read(self, tmp_path, capsys):
        code = self._code(tmp_path, [0x43000064])    # LOAD ACC 100
        assert retikit.main(["emu", str(code), "--strict"]) == 1
        assert "read uninitialized 'data[0x64]'" in capsys.readouterr().err

    def test_uninitialized_read_warns_and_continues(self, tmp_path):
        code = self._code(tmp_path, [0x43000064])
        assert retikit.main(["emu", str(code), "--quiet-reads"]) == 0
        assert retikit.main(["emu", str(code)]) == 0

    def test_step_limit_is_not_an_error(self, tmp_path, monkeypatch, capsys):
        monkeypatch.setenv("COLUMNS", "200")
        code = self._code(tmp_path, [0xF8000001, 0xF8FFFFFF])   # JUMP 1; JUMP -1
        assert retikit.main(["emu", str(code), "--steps", "50"]) == 0
        assert "step limit 50 reached" in capsys.readouterr().err

    def test_log_capacity(self, tmp_path, capsys):
        code = self._code(tmp_path, [0x80000400])    # STORE 1024
        assert retikit.main(["emu", str(code), "--log-capacity", "10"]) == 1
        assert "emulator error" in capsys.readouterr().err

    @pytest.mark.parametrize("value", ["9", "33", "ten"])
    def test_log_capacity_range(self, tmp_path, value):
        code = self._code(tmp_path, [0xC0000000])
        with pytest.raises(SystemExit):
            retikit.main(["emu", str(code), "--log-capacity", value])

    def test_dump_binary_image_bound(self, tmp_path, capsys):
        code = self._code(tmp_path, [0x73000001, 0x80FFFFFF])   # LOADI ACC 1; STORE 0xffffff
        out = tmp_path / "final.bin"
        assert retikit.main(["emu", str(code), "--dump-binary", str(out)]) == 1
        captured = capsys.readouterr()
        assert "retikit: emulator error: data image up to 'data[0xffffff]'" in captured.err
        assert captured.out == ""
        assert not out.exists()

    def test_step_trace(self, tmp_path, monkeypatch, capsys):
        monkeypatch.setenv("COLUMNS", "200")
        code = self._code(tmp_path, [0x7300002A, 0xF8000000])   # LOADI ACC 42; JUMP 0
        assert retikit.main(["emu", str(code), "--step"]) == 0
        captured = capsys.readouterr()
        assert captured.out == ""
        assert "LOADI ACC 42" in captured.err

    def test_step_trace_after_plain_run(self, tmp_path, monkeypatch, capsys):
        monkeypatch.setenv("COLUMNS", "200")
        code = self._code(tmp_path, [0x7300002A, 0xF8000000])
        assert retikit.main(["emu", str(code)]) == 0
        assert "LOADI ACC 42" not in capsys.readouterr().err
        assert retikit.main(["emu", str(code), "--step"]) == 0
        assert "LOADI ACC 42" in capsys.readouterr().err

    def test_log_dir(self, tmp_path):
        code = self._code(tmp_path, [0xC0000000])
        logs = tmp_path / "logs"
        assert retikit.main(["emu", str(code)]) == 0
        assert retikit.main(["emu", str(code), "--log-dir", str(logs)]) == 0
        files = list(logs.glob("reti_*.log"))
        assert len(files) == 1
        assert "Logger initialized: reti" in files[0].read_text(encoding="utf-8")


def test_no_command_prints_help(capsys):
    assert retikit.main([]) == 0
    assert "retikit" in capsys.readouterr().out


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
