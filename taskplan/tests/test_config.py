import logging
import os
import shutil
import tempfile
import unittest
from unittest import mock

from taskplan.config import SchedulerConfig
from taskplan.domain.errors import ValidationError
from taskplan.utils.logging import get_logger, setup_logging


class SchedulerConfigTestCase(unittest.TestCase):
    def test_defaults(self):
        config = SchedulerConfig()
        self.assertEqual(config.default_hours_per_day, 4)
        self.assertEqual(config.hours_per_working_day, 8)
        self.assertEqual(config.overload_threshold, 80)
        self.assertEqual(config.max_daily_tasks, 5)
        self.assertEqual(config.bottleneck_rule, "simple")
        self.assertEqual(config.weekend_hours_factor, 1.0)
        self.assertEqual(config.critical_fraction, 0.3)
        self.assertEqual(config.critical_path_method, "fan_out")
        self.assertIsNone(config.reschedule_timeout)

    def test_invalid_values(self):
        invalid = [
            {"default_hours_per_day": 0},
            {"overload_threshold": -1},
            {"bottleneck_rule": "strict"},
            {"weekend_hours_factor": -0.5},
            {"critical_fraction": 0},
            {"critical_path_method": "pert"},
            {"default_span_days": 0},
            {"lock_timeout": 0},
            {"reschedule_timeout": -1},
        ]
        for values in invalid:
            with self.subTest(values=values):
                with self.assertRaises(ValidationError):
                    SchedulerConfig(**values)

    def test_from_dict_ignores_unknown_keys(self):
        config = SchedulerConfig.from_dict({"max_daily_tasks": 7, "colour": "blue", "log_file": None})
        self.assertEqual(config.max_daily_tasks, 7)
        self.assertIsNone(config.log_file)

    def test_round_trip(self):
        config = SchedulerConfig(bottleneck_rule="composite", auto_search_days=3)
        self.assertEqual(SchedulerConfig.from_dict(config.to_dict()).to_dict(), config.to_dict())

    def test_from_env(self):
        env = {
            "TASKPLAN_MAX_DAILY_TASKS": "9",
            "TASKPLAN_WEEKEND_HOURS_FACTOR": "0.3",
            "TASKPLAN_BOTTLENECK_RULE": "composite",
            "TASKPLAN_RESCHEDULE_TIMEOUT": "2.5",
        }
        with mock.patch.dict(os.environ, env):
            config = SchedulerConfig.from_env(os.devnull)
        self.assertEqual(config.max_daily_tasks, 9)
        self.assertEqual(config.weekend_hours_factor, 0.3)
        self.assertEqual(config.bottleneck_rule, "composite")
        self.assertEqual(config.reschedule_timeout, 2.5)

    def test_from_env_file(self):
        temp_dir = tempfile.mkdtemp()
        try:
            env_file = os.path.join(temp_dir, ".env")
            with open(env_file, "w") as f:
                f.write("TASKPLAN_AUTO_SEARCH_DAYS=8\n")
            with mock.patch.dict(os.environ, {}):
                config = SchedulerConfig.from_env(env_file)
                self.assertEqual(config.auto_search_days, 8)
        finally:
            shutil.rmtree(temp_dir)

    def test_from_env_invalid(self):
        with mock.patch.dict(os.environ, {"TASKPLAN_MAX_DAILY_TASKS": "many"}):
            with self.assertRaises(ValidationError):
                SchedulerConfig.from_env(os.devnull)


class LoggingSetupTestCase(unittest.TestCase):
    def tearDown(self):
        logger = logging.getLogger("taskplan")
        logger.handlers = []
        logger.propagate = True
        logger.setLevel(logging.NOTSET)

    def test_setup_logging(self):
        temp_dir = tempfile.mkdtemp()
        try:
            log_file = os.path.join(temp_dir, "logs", "taskplan.log")
            logger = setup_logging({"log_level": "debug", "log_file": log_file})
            self.assertEqual(logger.level, logging.DEBUG)
            self.assertEqual(len(logger.handlers), 2)
            self.assertFalse(logger.propagate)

            get_logger("taskplan.services.bulk").info("hello")
            for handler in logger.handlers:
                handler.flush()
                handler.close()
            with open(log_file) as f:
                self.assertIn("hello", f.read())
        finally:
            shutil.rmtree(temp_dir)

    def test_unknown_level_falls_back_to_info(self):
        logger = setup_logging({"log_level": "chatty"})
        self.assertEqual(logger.level, logging.INFO)


if __name__ == "__main__":
    unittest.main()
