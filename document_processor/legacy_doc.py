"""
Reader for Word 97-2003 binary documents (.doc).

The OLE2 container is opened with olefile. Text comes from the piece table
in the Clx structure, paragraph justification from the PAPX formatted disk
pages and the section count from the section descriptor table. Tables,
styles and embedded objects are not interpreted.
"""

import bisect
import io
import logging
import struct
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import olefile

from document_processor.exceptions import LegacyDocumentError

logger = logging.getLogger(__name__)

WORD_IDENT = 0xA5EC

# FIB offsets
FIB_FLAGS = 0x0A
FIB_CCP_TEXT = 0x4C
FIB_FC_PLCF_SED = 0xCA
FIB_FC_PLCF_BTE_PAPX = 0x102
FIB_FC_CLX = 0x1A2
FIB_MIN_SIZE = 0x1AA

FLAG_ENCRYPTED = 0x0100
FLAG_WHICH_TABLE = 0x0200

FKP_PAGE_SIZE = 512
PCD_SIZE = 8
SED_SIZE = 12
BX_PAP_SIZE = 13

FC_COMPRESSED = 0x40000000
FC_MASK = 0x3FFFFFFF

SPRM_P_JC_80 = 0x2403
SPRM_P_JC = 0x2461
SPRM_T_DEF_TABLE = 0xD608

# operand size by spra (sprm >> 13); 6 is variable length
SPRA_OPERAND_SIZE = {0: 1, 1: 1, 2: 2, 3: 4, 4: 2, 5: 2, 7: 3}

JUSTIFICATION = {0: "LEFT", 1: "CENTER", 2: "RIGHT", 3: "BOTH", 4: "DISTRIBUTE"}

FIELD_BEGIN = '\x13'
FIELD_SEPARATOR = '\x14'
FIELD_END = '\x15'
PARAGRAPH_END = '\r'
CELL_END = '\x07'
DROPPED_CHARS = {'\x01', '\x08', '\x1f'}
LINE_BREAKS = {'\x0b', '\x0c', '\x0e'}


@dataclass
class LegacyParagraph:
    text: str
    justification: Optional[str] = None


@dataclass
class Piece:
    cp_start: int
    cp_end: int
    fc: int
    compressed: bool

    def char_fc(self, cp: int) -> int:
        """File offset of the character at cp."""
        if self.compressed:
            return self.fc + (cp - self.cp_start)
        return self.fc + 2 * (cp - self.cp_start)


def _u16(data: bytes, offset: int) -> int:
    return struct.unpack_from('<H', data, offset)[0]


def _u32(data: bytes, offset: int) -> int:
    return struct.unpack_from('<I', data, offset)[0]


def _slice(stream: bytes, fc: int, lcb: int, what: str) -> bytes:
    if fc + lcb > len(stream):
        raise LegacyDocumentError(f"{what} lies outside the table stream")
    return stream[fc:fc + lcb]


def read_pieces(clx: bytes) -> List[Piece]:
    """Piece descriptors from a Clx: skip Prc entries, then read the PlcPcd."""
    pos = 0
    while pos < len(clx) and clx[pos] == 0x01:
        pos += 3 + _u16(clx, pos + 1)
    if pos >= len(clx) or clx[pos] != 0x02:
        raise LegacyDocumentError("Piece table not found")

    lcb = _u32(clx, pos + 1)
    plc = clx[pos + 5:pos + 5 + lcb]
    count = (lcb - 4) // (4 + PCD_SIZE)
    if count <= 0 or len(plc) < lcb:
        raise LegacyDocumentError("Piece table is empty or truncated")

    pieces = []
    pcd_base = 4 * (count + 1)
    for i in range(count):
        raw_fc = _u32(plc, pcd_base + i * PCD_SIZE + 2)
        compressed = bool(raw_fc & FC_COMPRESSED)
        fc = raw_fc & FC_MASK
        pieces.append(Piece(
            cp_start=_u32(plc, 4 * i),
            cp_end=_u32(plc, 4 * (i + 1)),
            fc=fc // 2 if compressed else fc,
            compressed=compressed,
        ))
    return pieces


def read_characters(word_stream: bytes, pieces: List[Piece], text_length: int) -> List[Tuple[str, int]]:
    """(character, file offset) pairs for the main document text."""
    chars = []
    for piece in pieces:
        end = min(piece.cp_end, text_length)
        if piece.cp_start >= end:
            continue
        n = end - piece.cp_start
        if piece.compressed:
            raw = word_stream[piece.fc:piece.fc + n]
            text = raw.decode('cp1252', errors='replace')
        else:
            raw = word_stream[piece.fc:piece.fc + 2 * n]
            text = raw.decode('utf-16-le', errors='replace')
        for offset, char in enumerate(text):
            chars.append((char, piece.char_fc(piece.cp_start + offset)))
    return chars


def _prl_justification(grpprl: bytes) -> Optional[int]:
    """Walk a grpprl and return the last paragraph justification operand."""
    jc = None
    pos = 0
    while pos + 2 <= len(grpprl):
        sprm = _u16(grpprl, pos)
        pos += 2
        spra = sprm >> 13
        if spra == 6:
            if sprm == SPRM_T_DEF_TABLE:
                if pos + 2 > len(grpprl):
                    break
                size = _u16(grpprl, pos) + 1
            else:
                if pos >= len(grpprl):
                    break
                size = grpprl[pos] + 1
        else:
            size = SPRA_OPERAND_SIZE[spra]
        if sprm in (SPRM_P_JC_80, SPRM_P_JC) and pos < len(grpprl):
            jc = grpprl[pos]
        pos += size
    return jc


def read_paragraph_runs(word_stream: bytes, plcf_bte_papx: bytes) -> List[Tuple[int, int, Optional[int]]]:
    """(fc_start, fc_end, justification) for every paragraph run in the PAPX pages."""
    if len(plcf_bte_papx) < 4:
        return []
    count = (len(plcf_bte_papx) - 4) // 8
    runs = []
    for i in range(count):
        pn = _u32(plcf_bte_papx, 4 * (count + 1) + 4 * i) & 0x3FFFFF
        page_start = pn * FKP_PAGE_SIZE
        page = word_stream[page_start:page_start + FKP_PAGE_SIZE]
        if len(page) < FKP_PAGE_SIZE:
            logger.debug(f"PAPX page {pn} is truncated")
            continue
        crun = page[FKP_PAGE_SIZE - 1]
        bx_base = 4 * (crun + 1)
        if bx_base + crun * BX_PAP_SIZE > FKP_PAGE_SIZE - 1:
            raise LegacyDocumentError(f"PAPX page {pn} declares {crun} runs, more than fit in a page")
        for j in range(crun):
            fc_start = _u32(page, 4 * j)
            fc_end = _u32(page, 4 * (j + 1))
            b_offset = page[bx_base + j * BX_PAP_SIZE] * 2
            jc = None
            if b_offset:
                if b_offset >= FKP_PAGE_SIZE - 2:
                    raise LegacyDocumentError(f"PAPX page {pn} has a property offset outside the page")
                cb = page[b_offset]
                if cb == 0:
                    size = 2 * page[b_offset + 1]
                    start = b_offset + 2
                else:
                    size = 2 * cb - 1
                    start = b_offset + 1
                if start + size > FKP_PAGE_SIZE - 1:
                    raise LegacyDocumentError(f"PAPX page {pn} has properties running past the page")
                # first two bytes are the style index
                jc = _prl_justification(page[start + 2:start + size])
            runs.append((fc_start, fc_end, jc))
    runs.sort()
    return runs


def _justification_at(runs: List[Tuple[int, int, Optional[int]]], starts: List[int], fc: int) -> Optional[str]:
    i = bisect.bisect_right(starts, fc) - 1
    if i < 0:
        return None
    fc_start, fc_end, jc = runs[i]
    if not fc_start <= fc < fc_end:
        return None
    return JUSTIFICATION.get(jc if jc is not None else 0)


def split_paragraphs(chars: List[Tuple[str, int]],
                     runs: List[Tuple[int, int, Optional[int]]]) -> List[LegacyParagraph]:
    """Turn raw characters into paragraphs, dropping field instructions."""
    starts = [run[0] for run in runs]
    paragraphs = []
    buffer: List[str] = []
    fields: List[bool] = []  # True once a field has reached its result part

    def close(fc: int) -> None:
        paragraphs.append(LegacyParagraph(''.join(buffer), _justification_at(runs, starts, fc)))
        buffer.clear()

    for char, fc in chars:
        if char == FIELD_BEGIN:
            fields.append(False)
            continue
        if char == FIELD_SEPARATOR:
            if fields:
                fields[-1] = True
            continue
        if char == FIELD_END:
            if fields:
                fields.pop()
            continue
        if char == PARAGRAPH_END:
            close(fc)
            continue
        if char == CELL_END:
            buffer.append('\t')
            close(fc)
            continue
        if fields and not all(fields):
            continue
        if char in DROPPED_CHARS:
            continue
        if char in LINE_BREAKS:
            buffer.append('\n')
        elif char == '\x1e':
            buffer.append('-')
        else:
            buffer.append(char)

    if buffer:
        paragraphs.append(LegacyParagraph(''.join(buffer), None))
    return paragraphs


def parse_word_streams(word_stream: bytes, table_stream_for) -> Tuple[List[LegacyParagraph], int]:
    """
    Parse the WordDocument stream.

    table_stream_for(name) returns the bytes of "0Table" or "1Table".
    Returns the paragraphs and the section count. Structures that point
    outside their streams raise LegacyDocumentError.
    """
    try:
        return _parse_word_streams(word_stream, table_stream_for)
    except (IndexError, struct.error) as e:
        raise LegacyDocumentError(f"Corrupt Word document: {e}") from e


def _parse_word_streams(word_stream: bytes, table_stream_for) -> Tuple[List[LegacyParagraph], int]:
    if len(word_stream) < FIB_MIN_SIZE or _u16(word_stream, 0) != WORD_IDENT:
        raise LegacyDocumentError("Not a Word 97-2003 document")
    flags = _u16(word_stream, FIB_FLAGS)
    if flags & FLAG_ENCRYPTED:
        raise LegacyDocumentError("Encrypted Word documents are not supported")

    table_stream = table_stream_for("1Table" if flags & FLAG_WHICH_TABLE else "0Table")
    text_length = _u32(word_stream, FIB_CCP_TEXT)

    fc_clx, lcb_clx = _u32(word_stream, FIB_FC_CLX), _u32(word_stream, FIB_FC_CLX + 4)
    pieces = read_pieces(_slice(table_stream, fc_clx, lcb_clx, "Clx"))
    chars = read_characters(word_stream, pieces, text_length)

    fc_papx, lcb_papx = _u32(word_stream, FIB_FC_PLCF_BTE_PAPX), _u32(word_stream, FIB_FC_PLCF_BTE_PAPX + 4)
    runs = read_paragraph_runs(word_stream, _slice(table_stream, fc_papx, lcb_papx, "PlcBtePapx"))

    lcb_sed = _u32(word_stream, FIB_FC_PLCF_SED + 4)
    section_count = max((lcb_sed - 4) // (4 + SED_SIZE), 1) if lcb_sed else 1

    return split_paragraphs(chars, runs), section_count


def _decode(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bytes):
        value = value.decode('cp1252', errors='replace')
    value = value.strip('\x00').strip()
    return value or None


def _local(value: Any) -> Optional[datetime]:
    if not isinstance(value, datetime):
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone()


class LegacyWordDocument:
    """
    A .doc file opened from bytes. Use as a context manager so the OLE
    container is always closed.
    """

    def __init__(self, data: bytes):
        if not data or data[:len(olefile.MAGIC)] != olefile.MAGIC:
            raise LegacyDocumentError("Not an OLE2 compound document")
        try:
            self._ole = olefile.OleFileIO(io.BytesIO(data))
        except (OSError, ValueError) as e:
            raise LegacyDocumentError(f"Unreadable OLE2 container: {e}") from e
        try:
            if not self._ole.exists('WordDocument'):
                raise LegacyDocumentError("WordDocument stream not found")
            word_stream = self._ole.openstream('WordDocument').read()
            self.paragraphs, self.section_count = parse_word_streams(word_stream, self._table_stream)
        except Exception:
            self._ole.close()
            raise

    def _table_stream(self, name: str) -> bytes:
        if not self._ole.exists(name):
            raise LegacyDocumentError(f"{name} stream not found")
        return self._ole.openstream(name).read()

    @property
    def text(self) -> str:
        return '\n'.join(p.text for p in self.paragraphs)

    def summary(self) -> Dict[str, Any]:
        """Summary information: title, author, timestamps and counts."""
        meta = self._ole.get_metadata()
        return {
            "title": _decode(meta.title),
            "author": _decode(meta.author),
            "created": _local(meta.create_time),
            "last_saved": _local(meta.last_saved_time),
            "word_count": meta.num_words,
            "char_count": meta.num_chars,
            "page_count": meta.num_pages,
        }

    def close(self) -> None:
        self._ole.close()

    def __enter__(self) -> "LegacyWordDocument":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
