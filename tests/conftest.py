# tests/conftest.py
import pytest

import sims4_translator.core.database as db
from sims4_translator.core.schema import initialize_database
from sims4_translator.stbl.codec import StringRecord


SAMPLE_XML = """<?xml version="1.0" encoding="utf-8"?>
<STBLXMLResources>
  <Content>
    <Table>
      <String id="0x0001">
        <Source>Hello</Source>
        <Dest>Hello</Dest>
      </String>
      <String id="0x0002">
        <Source>{0.SimFirstName} is happy</Source>
        <Dest>{0.SimFirstName} is happy</Dest>
      </String>
      <String id="0x0003">
        <Source>Goodbye</Source>
        <Dest/>
      </String>
    </Table>
  </Content>
</STBLXMLResources>
"""


@pytest.fixture
def sample_xml():
    return SAMPLE_XML


@pytest.fixture
def temp_db(tmp_path, monkeypatch):
    """Point the database module at a fresh file under tmp_path."""
    db_file = tmp_path / "test.db"
    monkeypatch.setattr(db, "DB_FILE", db_file)
    initialize_database()
    return db_file


def make_records(*pairs):
    """``make_records(("A", "x"), ("B", "y"))`` -> list of StringRecord."""
    return [StringRecord(id=string_id, source=source, dest=source) for string_id, source in pairs]
