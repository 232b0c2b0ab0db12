"""
Configuration manager for Discord Quiz Bot settings and parameters.
"""
import logging
from typing import Optional, Dict, Any, List
from pathlib import Path
import os

from .models import QuizSettings


class ConfigManager:
    """Manages bot configuration settings and quiz parameters."""

    # Default configuration values
    DEFAULT_QUESTION_COUNT = 20
    DEFAULT_PASS_THRESHOLD = 16
    DEFAULT_BANK_DIRECTORY = "./banks/"

    # Validation limits
    MIN_QUESTION_COUNT = 1
    MAX_QUESTION_COUNT = 100
    MIN_PASS_THRESHOLD = 0

    def __init__(self):
        """Initialize ConfigManager with default settings."""
        self.logger = logging.getLogger(__name__)
        self._global_settings = QuizSettings(
            question_count=self.DEFAULT_QUESTION_COUNT,
            pass_threshold=self.DEFAULT_PASS_THRESHOLD
        )
        self._bank_directory = self.DEFAULT_BANK_DIRECTORY
        self._bank_name: Optional[str] = None
        self._results_channel_id: Optional[int] = None

    def get_quiz_settings(self) -> QuizSettings:
        """
        Get current quiz settings.

        Returns:
            Copy of the current QuizSettings
        """
        return QuizSettings(
            question_count=self._global_settings.question_count,
            pass_threshold=self._global_settings.pass_threshold
        )

    def set_question_count(self, count: int) -> Dict[str, Any]:
        """
        Set the number of questions drawn for each session.

        Args:
            count: Number of questions per session

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        # bool is an int subclass, reject it explicitly
        if not isinstance(count, int) or isinstance(count, bool):
            error_msg = f"Question count must be an integer, got {type(count).__name__}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Invalid input: Expected a number, got {type(count).__name__}"
            }

        if count < self.MIN_QUESTION_COUNT:
            error_msg = f"Question count must be at least {self.MIN_QUESTION_COUNT}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Too few questions: Minimum is {self.MIN_QUESTION_COUNT}"
            }

        if count > self.MAX_QUESTION_COUNT:
            error_msg = f"Question count cannot exceed {self.MAX_QUESTION_COUNT}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Too many questions: Maximum is {self.MAX_QUESTION_COUNT}"
            }

        self._global_settings.question_count = count
        self.logger.info(f"Question count set to {count}")
        return {
            'success': True,
            'message': f"Question count set to {count}",
            'user_message': f"✅ Question count set to {count}"
        }

    def get_question_count(self) -> int:
        """
        Get current question count setting.

        Returns:
            Number of questions per session
        """
        return self._global_settings.question_count

    def set_pass_threshold(self, threshold: int) -> Dict[str, Any]:
        """
        Set the minimum number of correct answers needed to pass.

        Args:
            threshold: Required correct answers

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if not isinstance(threshold, int) or isinstance(threshold, bool):
            error_msg = f"Pass threshold must be an integer, got {type(threshold).__name__}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Invalid input: Expected a number, got {type(threshold).__name__}"
            }

        if threshold < self.MIN_PASS_THRESHOLD:
            error_msg = f"Pass threshold must be at least {self.MIN_PASS_THRESHOLD}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Threshold too low: Minimum is {self.MIN_PASS_THRESHOLD}"
            }

        if threshold > self.MAX_QUESTION_COUNT:
            error_msg = f"Pass threshold cannot exceed {self.MAX_QUESTION_COUNT}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Threshold too high: Maximum is {self.MAX_QUESTION_COUNT}"
            }

        self._global_settings.pass_threshold = threshold
        self.logger.info(f"Pass threshold set to {threshold}")

        user_message = f"✅ Pass threshold set to {threshold}"
        if threshold > self._global_settings.question_count:
            user_message += (f" (⚠️ higher than the {self._global_settings.question_count} "
                             f"questions per quiz, nobody can pass)")

        return {
            'success': True,
            'message': f"Pass threshold set to {threshold}",
            'user_message': user_message
        }

    def get_pass_threshold(self) -> int:
        """
        Get current pass threshold setting.

        Returns:
            Minimum correct answers needed to pass
        """
        return self._global_settings.pass_threshold

    def set_bank_directory(self, directory: str) -> Dict[str, Any]:
        """
        Set the directory path for question bank files with validation.

        Args:
            directory: Path to question bank directory

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if not isinstance(directory, str):
            error_msg = f"Bank directory must be a string, got {type(directory).__name__}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Invalid input: Expected a path string, got {type(directory).__name__}"
            }

        if not directory.strip():
            error_msg = "Bank directory cannot be empty"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': "❌ Directory path cannot be empty"
            }

        try:
            normalized_path = str(Path(directory).resolve())
        except (OSError, ValueError) as e:
            error_msg = f"Invalid directory path format: {e}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Invalid path format: {directory}"
            }

        # Refuse system directories
        system_dirs = ['/bin', '/usr', '/etc', '/sys', '/proc', 'C:\\Windows', 'C:\\Program Files']
        if any(normalized_path.startswith(sys_dir) for sys_dir in system_dirs):
            error_msg = f"Cannot use system directory: {normalized_path}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Cannot use system directory: {directory}"
            }

        self._bank_directory = normalized_path
        self.logger.info(f"Bank directory set to {normalized_path}")
        return {
            'success': True,
            'message': f"Bank directory set to {normalized_path}",
            'user_message': f"✅ Bank directory set to {normalized_path}"
        }

    def get_bank_directory(self) -> str:
        """
        Get current question bank directory.

        Returns:
            Path to question bank directory
        """
        return self._bank_directory

    def set_bank_name(self, bank_name: Optional[str]) -> Dict[str, Any]:
        """
        Choose which loaded bank sessions draw from.

        Args:
            bank_name: Bank file stem, or None to use the first available bank

        Returns:
            Dictionary with success status and messages
        """
        if bank_name is not None and (not isinstance(bank_name, str) or not bank_name.strip()):
            error_msg = f"Bank name must be a non-empty string, got {bank_name!r}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': "❌ Bank name cannot be empty"
            }

        self._bank_name = bank_name.strip() if bank_name else None
        self.logger.info(f"Bank name set to {self._bank_name or 'first available'}")
        return {
            'success': True,
            'message': f"Bank name set to {self._bank_name or 'first available'}",
            'user_message': f"✅ Using bank: {self._bank_name or 'first available'}"
        }

    def get_bank_name(self) -> Optional[str]:
        """Get the configured bank name, None means first available."""
        return self._bank_name

    def set_results_channel_id(self, channel_id: Optional[int]) -> Dict[str, Any]:
        """
        Set the Discord channel that receives result payloads.

        Args:
            channel_id: Channel identifier, or None to disable reporting

        Returns:
            Dictionary with success status and messages
        """
        if channel_id is not None and (not isinstance(channel_id, int) or isinstance(channel_id, bool)
                                       or channel_id <= 0):
            error_msg = f"Results channel id must be a positive integer, got {channel_id!r}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': "❌ Invalid results channel id"
            }

        self._results_channel_id = channel_id
        if channel_id is None:
            self.logger.info("Result reporting disabled")
        else:
            self.logger.info(f"Results channel set to {channel_id}")
        return {
            'success': True,
            'message': f"Results channel set to {channel_id}",
            'user_message': "✅ Results channel updated"
        }

    def get_results_channel_id(self) -> Optional[int]:
        """Get the results channel id, None when reporting is disabled."""
        return self._results_channel_id

    def apply_config(self, config: Dict[str, Any]) -> List[str]:
        """
        Apply settings from a parsed config.json.

        Invalid entries are skipped and keep their current value.

        Args:
            config: Parsed configuration dictionary

        Returns:
            List of error messages for entries that could not be applied
        """
        errors = []
        quiz_config = config.get('quiz', {}) or {}
        bot_config = config.get('bot', {}) or {}

        results = [
            self.set_bank_directory(quiz_config.get('bank_directory', self.DEFAULT_BANK_DIRECTORY)),
            self.set_bank_name(quiz_config.get('bank_name')),
            self.set_question_count(quiz_config.get('question_count', self.DEFAULT_QUESTION_COUNT)),
            self.set_pass_threshold(quiz_config.get('pass_threshold', self.DEFAULT_PASS_THRESHOLD)),
            self.set_results_channel_id(bot_config.get('results_channel_id')),
        ]

        for result in results:
            if not result['success']:
                errors.append(result['error'])

        if errors:
            self.logger.warning(f"Configuration applied with {len(errors)} errors")
        else:
            self.logger.info("Configuration applied successfully")
        return errors

    def reset_to_defaults(self) -> None:
        """Reset all settings to their default values."""
        self._global_settings = QuizSettings(
            question_count=self.DEFAULT_QUESTION_COUNT,
            pass_threshold=self.DEFAULT_PASS_THRESHOLD
        )
        self._bank_directory = self.DEFAULT_BANK_DIRECTORY
        self._bank_name = None
        self._results_channel_id = None
        self.logger.info("All settings reset to default values")

    def validate_settings(self) -> Dict[str, Any]:
        """
        Validate current settings and return validation results.

        Returns:
            Dictionary with validation results and any issues found
        """
        validation_result = {
            "valid": True,
            "issues": []
        }

        question_count = self._global_settings.question_count
        if (not isinstance(question_count, int) or
                question_count < self.MIN_QUESTION_COUNT or
                question_count > self.MAX_QUESTION_COUNT):
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid question count: {question_count}")

        threshold = self._global_settings.pass_threshold
        if not isinstance(threshold, int) or threshold < self.MIN_PASS_THRESHOLD:
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid pass threshold: {threshold}")
        elif isinstance(question_count, int) and threshold > question_count:
            validation_result["valid"] = False
            validation_result["issues"].append(
                f"Invalid pass threshold: {threshold} exceeds question count {question_count}"
            )

        if not isinstance(self._bank_directory, str) or not self._bank_directory.strip():
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid bank directory: {self._bank_directory}")

        return validation_result

    def get_settings_summary(self) -> str:
        """
        Get a formatted summary of current settings.

        Returns:
            Human-readable string describing current settings
        """
        reporting_str = (
            f"channel {self._results_channel_id}"
            if self._results_channel_id is not None
            else "disabled"
        )

        return (
            f"Quiz Settings:\n"
            f"• Questions: {self._global_settings.question_count}\n"
            f"• Pass threshold: {self._global_settings.pass_threshold}\n"
            f"• Bank: {self._bank_name or 'first available'}\n"
            f"• Bank Directory: {self._bank_directory}\n"
            f"• Result reporting: {reporting_str}"
        )

    def get_configuration_health_check(self) -> Dict[str, Any]:
        """
        Perform a health check of the configuration.

        Returns:
            Dictionary with health status and recommendations
        """
        health_check = {
            'healthy': True,
            'warnings': [],
            'errors': [],
            'recommendations': []
        }

        validation_result = self.validate_settings()
        if not validation_result['valid']:
            health_check['healthy'] = False
            health_check['errors'].extend(f"❌ {issue}" for issue in validation_result['issues'])

        bank_dir = Path(self._bank_directory)
        if not bank_dir.exists():
            health_check['warnings'].append(
                f"⚠️ Bank directory does not exist: {self._bank_directory}"
            )
            health_check['recommendations'].append(
                "The bank directory will be created automatically when loading question banks."
            )
        elif not os.access(bank_dir, os.R_OK):
            health_check['healthy'] = False
            health_check['errors'].append(
                f"❌ Cannot read bank directory: {self._bank_directory}"
            )
            health_check['recommendations'].append(
                "Check file permissions for the bank directory."
            )

        if self._global_settings.pass_threshold == 0:
            health_check['warnings'].append("⚠️ Pass threshold is 0, every session passes")

        if self._results_channel_id is None:
            health_check['recommendations'].append(
                "Set bot.results_channel_id in config.json to receive quiz results."
            )

        return health_check
