"""Tests for the schema registry and header auto-mapping."""

from __future__ import annotations

import pytest

from permitdex.importing.errors import UnknownTableError
from permitdex.importing.schemas import (
    PERMITS_TABLE,
    ColumnSpec,
    SchemaDefinition,
    auto_map_columns,
    get_schema,
    list_schemas,
    normalize_header,
)


class TestRegistry:
    def test_all_tables_registered(self):
        tables = [schema.table for schema in list_schemas()]

        assert tables == [
            PERMITS_TABLE,
            "land_registry",
            "buildings",
            "projects",
            "developers",
            "contractor_projects",
            "consultant_projects",
            "areas",
            "companies",
        ]

    def test_unknown_table(self):
        with pytest.raises(UnknownTableError) as exc_info:
            get_schema("permits")

        assert isinstance(exc_info.value, KeyError)
        assert "permits" in str(exc_info.value)
        assert "projects" in str(exc_info.value)

    def test_required_and_optional_columns(self):
        schema = get_schema(PERMITS_TABLE)

        assert [column.name for column in schema.required_columns] == ["project_no", "parcel_id"]
        assert "permit_date" in [column.name for column in schema.optional_columns]

    def test_only_project_names_are_translatable(self):
        translatable = {
            (schema.table, column.name)
            for schema in list_schemas()
            for column in schema.translatable_columns
        }
        assert translatable == {("projects", "project_name")}

    def test_composite_conflict_key(self):
        schema = get_schema("companies")

        assert schema.conflict_key == ("license_no", "type")
        assert schema.uses_upsert

    def test_surrogate_keyed_tables_are_insert_only(self):
        assert not get_schema("contractor_projects").uses_upsert
        assert not get_schema("consultant_projects").uses_upsert
        assert get_schema("land_registry").uses_upsert

    def test_company_project_tables_mirror_each_other(self):
        contractor = get_schema("contractor_projects")
        consultant = get_schema("consultant_projects")

        assert contractor.has_column("contractor_license_no")
        assert contractor.has_column("consultant_english")
        assert consultant.has_column("consultant_license_no")
        assert consultant.has_column("contractor_english")

    def test_column_lookup(self):
        schema = get_schema("projects")

        assert schema.column("project_name").translatable
        with pytest.raises(KeyError):
            schema.column("nope")

    def test_duplicate_columns_rejected(self):
        with pytest.raises(ValueError, match="Duplicate"):
            SchemaDefinition("t", "T", ("a",), (ColumnSpec("a"), ColumnSpec("a")))

    def test_conflict_key_required(self):
        with pytest.raises(ValueError):
            SchemaDefinition("t", "T", (), (ColumnSpec("a"),))


class TestAutoMap:
    def test_normalize_header(self):
        assert normalize_header("Project_Name") == "projectname"
        assert normalize_header("project name") == "projectname"

    def test_case_and_separator_insensitive(self):
        schema = get_schema("projects")

        mapping = auto_map_columns(["Project ID", "PROJECT_NAME", "developerName", "Other"], schema)

        assert mapping == {
            "project_id": "Project ID",
            "project_name": "PROJECT_NAME",
            "developer_name": "developerName",
        }

    def test_no_fuzzy_matching(self):
        schema = get_schema("projects")

        assert auto_map_columns(["proj_id", "name"], schema) == {}

    def test_first_matching_header_wins(self):
        schema = get_schema("areas")

        mapping = auto_map_columns(["MUNC ZIP CODE", "munc_zip_code"], schema)

        assert mapping["munc_zip_code"] == "MUNC ZIP CODE"
