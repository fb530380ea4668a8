"""
Text header block of Neuralynx CSC (.ncs) files.

The header is a fixed 16 KiB block of single-byte text, NUL padded:

    ######## Neuralynx Data File Header
    -FileType CSC
    -RecordSize 1044
    -SamplingFrequency 32000
    -ADBitVolts 0.000000030517578125
    -AcqEntName CSC1
    ...

Only lines starting with '-' carry data. Each is split at the first space
into a key (marker stripped) and a value. Lines without a space are skipped
and later duplicate keys overwrite earlier ones.

Bytes are mapped 1:1 onto code points 0-255 (latin-1), so decoding never
fails whatever the header contains.
"""

from collections.abc import Mapping
from typing import Dict, Iterator, Optional


# Header block size in bytes
HEADER_SIZE = 16384

# Marker for key/value lines
KEY_MARKER = '-'

# First line written by acquisition software
BANNER = '######## Neuralynx Data File Header'

# Single-byte text encoding, one code point per byte
ENCODING = 'latin-1'

# Characters decode() treats as line ends or padding
_LINE_BREAKERS = ('\n', '\r', '\x00')


class CscHeader(Mapping):
    """
    Immutable key -> value mapping parsed from a CSC header block.

    Behaves as a read-only dict:

        header = CscHeader.decode(block)
        header['SamplingFrequency']   # '32000'
        header.sampling_frequency     # 32000.0
    """

    def __init__(self, fields: Optional[Dict[str, str]] = None):
        self._fields = dict(fields or {})

    def __getitem__(self, key: str) -> str:
        return self._fields[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __eq__(self, other) -> bool:
        if isinstance(other, Mapping):
            return dict(self._fields) == dict(other)
        return NotImplemented

    def __hash__(self):
        return hash(frozenset(self._fields.items()))

    def __repr__(self) -> str:
        return f"CscHeader({self._fields!r})"

    @classmethod
    def decode(cls, data: bytes) -> 'CscHeader':
        """
        Parse a header block.

        Args:
            data: Header bytes (normally exactly HEADER_SIZE)

        Returns:
            Parsed CscHeader
        """
        text = bytes(data).decode(ENCODING).rstrip('\x00')

        fields = {}
        # Split on '\n' only: latin-1 text contains characters such as
        # '\x85' that str.splitlines() would also treat as breaks.
        for line in text.split('\n'):
            line = line.rstrip('\r')
            if not line.startswith(KEY_MARKER):
                continue

            key, sep, value = line.partition(' ')
            if not sep:
                continue
            fields[key[1:]] = value

        return cls(fields)

    def encode(self, banner: str = BANNER) -> bytes:
        """
        Encode to a NUL-padded HEADER_SIZE block.

        Raises:
            ValueError: If the text does not fit in HEADER_SIZE bytes, or a
                key or value cannot round-trip through decode()
        """
        lines = [banner] if banner else []
        for key, value in self._fields.items():
            if ' ' in key or any(c in key or c in value for c in _LINE_BREAKERS):
                raise ValueError(f"Header entry cannot be encoded: {key!r}")
            lines.append(f"{KEY_MARKER}{key} {value}")

        raw = '\r\n'.join(lines).encode(ENCODING) + b'\r\n'
        if len(raw) > HEADER_SIZE:
            raise ValueError(f"Header too large: {len(raw)} > {HEADER_SIZE}")

        return raw.ljust(HEADER_SIZE, b'\x00')

    def get_float(self, key: str, default: Optional[float] = None) -> Optional[float]:
        """Get a numeric header value, or default if missing or unparsable."""
        value = self._fields.get(key)
        if value is None:
            return default
        try:
            return float(value.split()[0])
        except (ValueError, IndexError):
            return default

    @property
    def sampling_frequency(self) -> Optional[float]:
        """Nominal sampling frequency in Hz."""
        return self.get_float('SamplingFrequency')

    @property
    def bit_volts(self) -> Optional[float]:
        """Volts per ADC bit."""
        return self.get_float('ADBitVolts')

    @property
    def channel_name(self) -> Optional[str]:
        """Acquisition entity name, e.g. 'CSC1'."""
        name = self._fields.get('AcqEntName')
        return name.strip() if name is not None else None
