# ReTI Emulator — pure-software ReTI machine simulator
# Part of the ReTI toolkit (see reti_asm for the assembler and codec)
#
# Layout:
#   cpu/regs.py      — register file PC, IN1, IN2, ACC
#   mem/memory.py    — sparse word-addressed data memory + validity map
#   emu.py           — fetch/decode/execute loop, stop reasons, trace
#   errors.py        — fatal fault types and the uninitialized-read record
#   log_setup.py     — rich console / file logging for front ends
#
# Instructions are decoded by reti_asm.codec, the same table the assembler
# encodes with, so the emulator never carries its own bit layout.
