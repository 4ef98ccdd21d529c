"""
Frame names and CSS selectors for the TeachAssist pages the driver touches.
"""

FRAMES = {
    "menu": "menuFrame",
    "main": "mainFrame",
}

LOGIN = {
    "username_input": 'input[name="username"]',
    "password_input": 'input[name="password"]',
    "submit_button": 'input[type="submit"], button[type="submit"]',
}

TABS = {
    "attendance": "Attendance",
}

ATTENDANCE = {
    "date_input": 'input[name="inputDate"]',
    "record_button": 'input[value="Record Attendance"]',
}

# Labels in the first cell of rows that are not students
NON_STUDENT_ROW_LABELS = frozenset({"For All Students", "First name"})

# Every student row carries one radio per attendance code
RADIOS_PER_STUDENT_ROW = 4


def attendance_radio(row_reference: str, code: str) -> str:
    """Selector for one student's radio button with the given code."""
    return f'input[name="{row_reference}"][value="{code}"]'
