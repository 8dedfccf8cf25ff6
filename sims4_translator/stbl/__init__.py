"""
String-table module - Sims 4 STBL XML reading and writing
"""

from sims4_translator.stbl.codec import (
    ParseError,
    StringRecord,
    parse_xml,
    render_xml,
    export_file_name,
)

__all__ = ['ParseError', 'StringRecord', 'parse_xml', 'render_xml', 'export_file_name']
