"""
Data manager for question bank files and bank validation.
"""
import json
import os
import logging
from typing import Any, Dict, List, Optional, Tuple
from pathlib import Path

from .models import AnswerOption, Question


QuestionBank = Tuple[Question, ...]


SAMPLE_BANK_DATA = {
    "questions": [
        {
            "id": 1,
            "text": "Which of these is not a fire hazard affecting people and property?",
            "options": [
                {"id": "1a", "text": "Flames and sparks", "isCorrect": False},
                {"id": "1b", "text": "Elevated ambient temperature", "isCorrect": False},
                {"id": "1c", "text": "High voltage carried onto conductive parts of process equipment",
                 "isCorrect": True},
                {"id": "1d", "text": "Reduced oxygen concentration", "isCorrect": False},
                {"id": "1e", "text": "Increased concentration of toxic combustion products", "isCorrect": False}
            ]
        },
        {
            "id": 2,
            "text": "Working time in skin protection gear is determined by",
            "options": [
                {"id": "2a", "text": "Physical load and ambient temperature", "isCorrect": True},
                {"id": "2b", "text": "The time needed to finish the rescue task", "isCorrect": False},
                {"id": "2c", "text": "How the rescuer feels and whether they can keep working", "isCorrect": False}
            ]
        },
        {
            "id": 3,
            "text": "What is human adaptation?",
            "options": [
                {"id": "3a", "text": "Mental processes depending on the state of reality", "isCorrect": False},
                {"id": "3b", "text": "A stable mental state under varying conditions", "isCorrect": False},
                {"id": "3c", "text": "The process of adjusting to environmental conditions", "isCorrect": True}
            ]
        },
        {
            "id": 4,
            "text": "What is the maximum allowed tilt of a pump station with the engine running?",
            "options": [
                {"id": "4a", "text": "No more than 20 degrees", "isCorrect": False},
                {"id": "4b", "text": "No more than 30 degrees", "isCorrect": True},
                {"id": "4c", "text": "No more than 40 degrees", "isCorrect": False}
            ]
        }
    ]
}


class DataManager:
    """Manages loading and validation of JSON question bank files."""

    MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB
    MIN_OPTIONS = 2
    # One answer button per option; a Discord message holds 25 buttons, one is restart
    MAX_DISPLAY_OPTIONS = 24

    def __init__(self, bank_directory: str = "./banks/"):
        """
        Initialize DataManager with bank directory path.

        Args:
            bank_directory: Path to directory containing JSON bank files
        """
        self.bank_directory = Path(bank_directory)
        self.loaded_banks: Dict[str, QuestionBank] = {}
        self.logger = logging.getLogger(__name__)
        self.load_errors: List[str] = []
        self.load_warnings: List[str] = []
        self.fallback_bank_created = False

    def load_bank_files(self) -> Dict[str, QuestionBank]:
        """
        Load all JSON files from the bank directory.

        Returns:
            Dictionary mapping bank names to tuples of Question objects
        """
        self.loaded_banks.clear()
        self.load_errors.clear()
        self.load_warnings.clear()
        self.fallback_bank_created = False

        directory_result = self._ensure_bank_directory()
        if not directory_result['success']:
            self.load_errors.append(directory_result['error'])
            return self._create_fallback_bank()

        try:
            json_files = sorted(self.bank_directory.glob("*.json"))
        except OSError as e:
            self.load_errors.append(f"System error scanning {self.bank_directory}: {e}")
            return self._create_fallback_bank()

        if not json_files:
            self.logger.warning(f"No JSON files found in {self.bank_directory}")
            self.load_errors.append(f"No question bank files found in {self.bank_directory}")
            return self._create_sample_bank()

        successful_loads = 0
        for json_file in json_files:
            load_result = self._load_bank_file_safely(json_file)
            if load_result['success']:
                successful_loads += 1
            else:
                self.load_errors.append(f"{json_file.name}: {load_result['error']}")

        if successful_loads == 0:
            self.logger.error("No question bank files could be loaded successfully")
            self.load_errors.append("All question bank files failed to load")
            return self._create_fallback_bank()

        self.logger.info(f"Successfully loaded {successful_loads} question bank files")
        if self.load_errors:
            self.logger.warning(f"Encountered {len(self.load_errors)} loading errors")

        return self.loaded_banks

    def _load_single_file(self, file_path: Path) -> Optional[dict]:
        """
        Load and parse a single JSON file.

        Args:
            file_path: Path to the JSON file

        Returns:
            Parsed JSON data or None if loading or validation failed
        """
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            self.logger.error(f"Invalid JSON in {file_path}: {e}")
            return None
        except OSError as e:
            self.logger.error(f"Failed to read bank file {file_path}: {e}")
            return None

        if not self.validate_bank_structure(data):
            self.logger.error(f"Invalid bank structure in {file_path}")
            return None
        return data

    def validate_bank_structure(self, data: Any) -> bool:
        """
        Validate that JSON data has the correct question bank structure.

        Expected structure:
        {
            "questions": [
                {
                    "id": int,
                    "text": str,
                    "options": [
                        {"id": str, "text": str, "isCorrect": bool},
                        ...  # at least two
                    ]
                }
            ]
        }

        A question without any option marked correct passes validation; it
        is recorded as a warning and simply never scores.

        Args:
            data: Parsed JSON data to validate

        Returns:
            True if structure is valid, False otherwise
        """
        if not isinstance(data, dict):
            self.logger.error("Bank data must be a JSON object")
            return False

        if "questions" not in data:
            self.logger.error("Bank data must contain a 'questions' key")
            return False

        questions = data["questions"]
        if not isinstance(questions, list):
            self.logger.error("'questions' value must be an array")
            return False

        if not questions:
            self.logger.error("Questions array cannot be empty")
            return False

        seen_question_ids = set()
        for i, question_data in enumerate(questions):
            if not isinstance(question_data, dict):
                self.logger.error(f"Question {i} must be an object")
                return False

            for key in ("id", "text", "options"):
                if key not in question_data:
                    self.logger.error(f"Question {i} missing '{key}' field")
                    return False

            question_id = question_data["id"]
            if not isinstance(question_id, int) or isinstance(question_id, bool):
                self.logger.error(f"Question {i} 'id' field must be an integer")
                return False

            if question_id in seen_question_ids:
                self.logger.error(f"Duplicate question id {question_id}")
                return False
            seen_question_ids.add(question_id)

            if not isinstance(question_data["text"], str):
                self.logger.error(f"Question {question_id} 'text' field must be a string")
                return False

            if not self._validate_options(question_id, question_data["options"]):
                return False

        return True

    def _validate_options(self, question_id: int, options: Any) -> bool:
        """Validate the option list of one question."""
        if not isinstance(options, list):
            self.logger.error(f"Question {question_id} 'options' field must be an array")
            return False

        if len(options) < self.MIN_OPTIONS:
            self.logger.error(f"Question {question_id} needs at least {self.MIN_OPTIONS} options")
            return False

        if len(options) > self.MAX_DISPLAY_OPTIONS:
            warning = (f"Question {question_id} has {len(options)} options, "
                       f"only the first {self.MAX_DISPLAY_OPTIONS} can be shown")
            self.logger.warning(warning)
            self.load_warnings.append(warning)

        seen_option_ids = set()
        correct_count = 0
        for option in options:
            if not isinstance(option, dict):
                self.logger.error(f"Question {question_id} options must be objects")
                return False

            if not isinstance(option.get("id"), str) or not isinstance(option.get("text"), str):
                self.logger.error(f"Question {question_id} options need string 'id' and 'text'")
                return False

            if option["id"] in seen_option_ids:
                self.logger.error(f"Question {question_id} has duplicate option id '{option['id']}'")
                return False
            seen_option_ids.add(option["id"])

            is_correct = option.get("isCorrect", False)
            if not isinstance(is_correct, bool):
                self.logger.error(f"Question {question_id} option '{option['id']}' 'isCorrect' must be a boolean")
                return False
            if is_correct:
                correct_count += 1

        if correct_count != 1:
            warning = f"Question {question_id} has {correct_count} options marked correct and cannot be scored"
            self.logger.warning(warning)
            self.load_warnings.append(warning)

        return True

    def _parse_questions(self, bank_data: dict) -> QuestionBank:
        """
        Parse validated bank data into Question objects.

        Args:
            bank_data: Validated bank data dictionary

        Returns:
            Tuple of Question objects in file order
        """
        return tuple(
            Question(
                id=question_data["id"],
                text=question_data["text"],
                options=tuple(
                    AnswerOption(
                        id=option["id"],
                        text=option["text"],
                        is_correct=option.get("isCorrect", False)
                    )
                    for option in question_data["options"]
                )
            )
            for question_data in bank_data["questions"]
        )

    def get_available_banks(self) -> List[str]:
        """
        Get list of available bank names.

        Returns:
            List of bank names (file stems)
        """
        return list(self.loaded_banks.keys())

    def get_bank(self, bank_name: Optional[str] = None) -> Optional[QuestionBank]:
        """
        Retrieve the questions of a bank.

        Args:
            bank_name: Name of the bank, or None for the first available one

        Returns:
            Tuple of questions, or None if the bank is not loaded
        """
        if bank_name is None:
            available = self.get_available_banks()
            if not available:
                return None
            bank_name = available[0]
        return self.loaded_banks.get(bank_name)

    def bank_exists(self, bank_name: str) -> bool:
        """Check if a bank with the given name is loaded."""
        return bank_name in self.loaded_banks

    def get_question_count(self, bank_name: str) -> int:
        """
        Get the number of questions in a bank.

        Args:
            bank_name: Name of the bank

        Returns:
            Number of questions in the bank, or 0 if bank not found
        """
        questions = self.loaded_banks.get(bank_name)
        return len(questions) if questions else 0

    def _ensure_bank_directory(self) -> Dict[str, Any]:
        """
        Ensure bank directory exists.

        Returns:
            Dictionary with success status and error message if applicable
        """
        try:
            if not self.bank_directory.exists():
                self.bank_directory.mkdir(parents=True, exist_ok=True)
                self.logger.info(f"Created bank directory: {self.bank_directory}")

            if not os.access(self.bank_directory, os.R_OK):
                return {
                    'success': False,
                    'error': f"Permission denied: Cannot read from {self.bank_directory}"
                }

            return {'success': True}

        except PermissionError:
            return {
                'success': False,
                'error': f"Permission denied: Cannot access {self.bank_directory}"
            }
        except OSError as e:
            return {
                'success': False,
                'error': f"System error accessing {self.bank_directory}: {e}"
            }

    def _load_bank_file_safely(self, json_file: Path) -> Dict[str, Any]:
        """
        Load a single bank file with error handling.

        Args:
            json_file: Path to the JSON file to load

        Returns:
            Dictionary with success status and error message if applicable
        """
        try:
            file_size = json_file.stat().st_size
            if file_size > self.MAX_FILE_SIZE:
                return {
                    'success': False,
                    'error': (f"File too large ({file_size / 1024 / 1024:.1f}MB). "
                              f"Maximum size is {self.MAX_FILE_SIZE / 1024 / 1024}MB")
                }
        except OSError as e:
            return {
                'success': False,
                'error': f"System error: {e}"
            }

        bank_data = self._load_single_file(json_file)
        if bank_data is None:
            return {
                'success': False,
                'error': "Invalid JSON structure or validation failed"
            }

        questions = self._parse_questions(bank_data)
        bank_name = json_file.stem
        self.loaded_banks[bank_name] = questions
        self.logger.info(f"Loaded bank '{bank_name}' with {len(questions)} questions")

        return {'success': True}

    def _create_sample_bank(self) -> Dict[str, QuestionBank]:
        """
        Write and load a sample bank when the directory has no bank files.

        Returns:
            Dictionary with the sample bank loaded
        """
        sample_file_path = self.bank_directory / "sample_bank.json"

        try:
            if not sample_file_path.exists():
                with open(sample_file_path, 'w', encoding='utf-8') as f:
                    json.dump(SAMPLE_BANK_DATA, f, indent=2, ensure_ascii=False)
                self.logger.info(f"Created sample bank file: {sample_file_path}")
        except OSError as e:
            self.logger.error(f"Failed to write sample bank: {e}")
            self.load_errors.append(f"Failed to write sample bank: {e}")

        questions = self._parse_questions(SAMPLE_BANK_DATA)
        self.loaded_banks["sample_bank"] = questions
        self.logger.info(f"Loaded sample bank with {len(questions)} questions")

        return self.loaded_banks

    def _create_fallback_bank(self) -> Dict[str, QuestionBank]:
        """
        Create a minimal in-memory bank when all file operations fail.

        Returns:
            Dictionary with the fallback bank loaded
        """
        self.loaded_banks["fallback_bank"] = (
            Question(
                id=1,
                text="This is a fallback question. What should you do when bank files can't be loaded?",
                options=(
                    AnswerOption(id="1a", text="Check the bank directory and file permissions", is_correct=True),
                    AnswerOption(id="1b", text="Ignore the error", is_correct=False)
                )
            ),
        )
        self.fallback_bank_created = True
        self.logger.warning("Created fallback bank due to file loading failures")

        return self.loaded_banks

    def get_load_errors(self) -> List[str]:
        """Get errors encountered during the last load operation."""
        return self.load_errors.copy()

    def has_load_errors(self) -> bool:
        """Check if there were any errors during the last load operation."""
        return len(self.load_errors) > 0

    def is_fallback_bank_active(self) -> bool:
        """Check if the fallback bank was created due to loading failures."""
        return self.fallback_bank_created

    def get_loading_summary(self) -> Dict[str, Any]:
        """
        Get a summary of the loading operation.

        Returns:
            Dictionary with loading statistics and status
        """
        return {
            'total_banks': len(self.loaded_banks),
            'has_errors': self.has_load_errors(),
            'error_count': len(self.load_errors),
            'errors': self.get_load_errors(),
            'warnings': self.load_warnings.copy(),
            'fallback_active': self.is_fallback_bank_active(),
            'bank_directory': str(self.bank_directory),
            'available_banks': self.get_available_banks()
        }
