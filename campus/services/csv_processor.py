import pandas as pd
import io
from typing import List, Dict, Tuple
from fastapi import UploadFile
from pydantic import ValidationError

from ..schemas.people import StudentCreate

STUDENT_TEMPLATE_COLUMNS = [
    'student_id', 'first_name', 'last_name', 'gender', 'date_of_birth', 'class_name',
    'guardian_name', 'guardian_phone', 'guardian_email', 'address', 'admission_date',
]


def _error_text(error: ValidationError) -> str:
    parts = []
    for err in error.errors():
        field = ".".join(str(part) for part in err.get("loc", ()))
        parts.append(f"{field}: {err.get('msg')}" if field else err.get("msg"))
    return "; ".join(parts)


class CSVProcessor:
    @staticmethod
    async def process_student_csv(file: UploadFile) -> Tuple[List[Dict], List[Dict]]:
        """
        Parse a student roster upload.
        Returns: (valid_rows, validation_errors)
        """
        contents = await file.read()
        try:
            decoded_content = contents.decode('utf-8-sig')
            # Keep every cell as text so IDs like 007 survive
            df = pd.read_csv(io.StringIO(decoded_content), dtype=str)
        except (UnicodeDecodeError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
            raise ValueError(f"Failed to process CSV: {str(e)}")

        df.columns = df.columns.str.strip().str.lower().str.replace(' ', '_')

        required_columns = ['student_id', 'first_name', 'last_name']
        missing_columns = [col for col in required_columns if col not in df.columns]
        if missing_columns:
            raise ValueError(f"Missing required columns: {missing_columns}")

        valid_rows = []
        validation_errors = []

        for index, row in df.iterrows():
            row_dict = {}
            for col, value in row.items():
                if pd.notna(value):
                    value = value.strip()
                    if value != "":
                        row_dict[col] = value

            class_name = row_dict.pop('class_name', None)
            try:
                validated_row = StudentCreate(**row_dict)
            except ValidationError as validation_error:
                validation_errors.append({
                    "row_number": index + 2,  # +2 for header and 0-based index
                    "data": row_dict,
                    "error": _error_text(validation_error),
                })
                continue

            data = validated_row.model_dump(exclude_none=True)
            if class_name:
                data['class_name'] = class_name
            data['row_number'] = index + 2
            valid_rows.append(data)

        return valid_rows, validation_errors

    @staticmethod
    def generate_student_template() -> str:
        template = pd.DataFrame([{
            'student_id': 'STU-001',
            'first_name': 'Ada',
            'last_name': 'Okafor',
            'gender': 'female',
            'date_of_birth': '2012-04-18',
            'class_name': 'JSS 1A',
            'guardian_name': 'Ngozi Okafor',
            'guardian_phone': '+2348012345678',
            'guardian_email': 'ngozi@example.com',
            'address': '12 Allen Avenue, Ikeja',
            'admission_date': '2024-09-09',
        }], columns=STUDENT_TEMPLATE_COLUMNS)
        return template.to_csv(index=False)
