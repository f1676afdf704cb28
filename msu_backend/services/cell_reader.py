# msu_backend/services/cell_reader.py

from datetime import date, datetime, time
from io import BytesIO
from typing import Any, List, Tuple

import openpyxl
import xlrd


# Лист после чтения: список строк, каждая строка - список текстов ячеек.
# Отсутствующая строка листа превращается в пустой список.
SheetRows = List[List[str]]

XLSX_SIGNATURE = b"PK"


def number_to_text(value: float) -> str:
    """Целые числа без хвоста '.0' (номер аудитории 101.0 -> '101')."""
    if value % 1 == 0:
        return str(int(value))
    return str(value)


def value_to_text(value: Any) -> str:
    """Приводит значение ячейки любого типа к строке."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, (int, float)):
        return number_to_text(float(value))
    return str(value)


def xlrd_cell_to_text(cell: xlrd.sheet.Cell, datemode: int) -> str:
    if cell.ctype in (xlrd.XL_CELL_EMPTY, xlrd.XL_CELL_BLANK, xlrd.XL_CELL_ERROR):
        return ""
    if cell.ctype == xlrd.XL_CELL_DATE:
        try:
            return xlrd.xldate_as_datetime(cell.value, datemode).isoformat()
        except (ValueError, xlrd.XLDateError):
            return number_to_text(cell.value)
    if cell.ctype == xlrd.XL_CELL_BOOLEAN:
        return value_to_text(bool(cell.value))
    return value_to_text(cell.value)


def _read_xls(payload: bytes) -> List[Tuple[str, SheetRows]]:
    book = xlrd.open_workbook(file_contents=payload)
    sheets = []
    for sheet in book.sheets():
        rows = [
            [xlrd_cell_to_text(cell, book.datemode) for cell in sheet.row(r)]
            for r in range(sheet.nrows)
        ]
        sheets.append((sheet.name, rows))
    return sheets


def _read_xlsx(payload: bytes) -> List[Tuple[str, SheetRows]]:
    book = openpyxl.load_workbook(BytesIO(payload), read_only=True, data_only=True)
    try:
        sheets = []
        for sheet in book.worksheets:
            rows = [[value_to_text(v) for v in row] for row in sheet.iter_rows(values_only=True)]
            sheets.append((sheet.title, rows))
        return sheets
    finally:
        book.close()


def read_workbook(payload: bytes) -> List[Tuple[str, SheetRows]]:
    """
    Читает книгу из байтов и возвращает тексты ячеек по листам.
    Формат определяется по содержимому: .xlsx - это zip-архив, всё остальное
    отдаем xlrd как старый .xls.
    """
    if payload.startswith(XLSX_SIGNATURE):
        return _read_xlsx(payload)
    return _read_xls(payload)


def cell_text(row: List[str], col: int) -> str:
    """Текст ячейки или пустая строка, если столбца в строке нет."""
    if 0 <= col < len(row):
        return row[col]
    return ""
