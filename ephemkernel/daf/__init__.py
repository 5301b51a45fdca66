"""
DAF binary layer.

Provides:
- Record/word address arithmetic and format constants
- Kernel file identification (architecture/type from the id word)
- DafFile: array summary search and word reads over an open DAF
"""

from .addressing import (
    RECORD_LENGTH,
    WORD_LENGTH,
    WORDS_PER_RECORD,
    record_count_to_byte_count,
    record_to_byte_offset,
    address_to_record_word,
    record_word_to_address,
    address_to_byte_offset,
    summary_size,
)
from .daf_state import DafState
from .kernel_file import (
    KernelFileInfo,
    DafFile,
    DafFileRecord,
    identify_architecture,
    read_file_info,
    open_kernel_file,
    unpack_summary,
)

__all__ = [
    'RECORD_LENGTH',
    'WORD_LENGTH',
    'WORDS_PER_RECORD',
    'record_count_to_byte_count',
    'record_to_byte_offset',
    'address_to_record_word',
    'record_word_to_address',
    'address_to_byte_offset',
    'summary_size',
    'DafState',
    'KernelFileInfo',
    'DafFile',
    'DafFileRecord',
    'identify_architecture',
    'read_file_info',
    'open_kernel_file',
    'unpack_summary',
]
