"""Static metadata describing QuizPlay."""

APP_NAME = "QuizPlay"
APP_VERSION = "0.1"
