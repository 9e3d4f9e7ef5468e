"""CLI constants and configuration."""

from prompt_toolkit.styles import Style

COMMANDS = ["add", "upload", "pause", "resume", "cancel", "retry", "status", "login", "clear", "exit", "help"]

STYLE = Style.from_dict(
    {
        "prompt": "#F45935 bold",
        "command": "#0088ff bold",
    }
)

RED_ORANGE = "\033[38;2;244;89;53m"
GREEN = "\033[32m"
RED = "\033[31m"
YELLOW = "\033[33m"
RESET = "\033[0m"

LOGO = f"""{RED_ORANGE}
 ██████╗ ███████╗███████╗██╗   ██╗███╗   ███╗ █████╗ ██████╗ ██╗     ███████╗
 ██╔══██╗██╔════╝██╔════╝██║   ██║████╗ ████║██╔══██╗██╔══██╗██║     ██╔════╝
 ██████╔╝█████╗  ███████╗██║   ██║██╔████╔██║███████║██████╔╝██║     █████╗
 ██╔══██╗██╔══╝  ╚════██║██║   ██║██║╚██╔╝██║██╔══██║██╔══██╗██║     ██╔══╝
 ██║  ██║███████╗███████║╚██████╔╝██║ ╚═╝ ██║██║  ██║██████╔╝███████╗███████╗
 ╚═╝  ╚═╝╚══════╝╚══════╝ ╚═════╝ ╚═╝     ╚═╝╚═╝  ╚═╝╚═════╝ ╚══════╝╚══════╝
{RESET}"""

WELCOME_TITLE = "Resumable CLI - Chunked, resumable file uploads"
WELCOME_HELP = "Type 'help' for commands or 'exit' to quit.\n"

PROMPT_TEXT = "resumable> "

HELP_TEXT = """Available commands:
  add <paths...>          Queue files and directories (directories are walked recursively)
  upload                  Start uploading queued files
  pause [name]            Pause one file, or every file when no name is given
  resume [name]           Resume one file, or every file when no name is given
  cancel [name]           Cancel one file, or every file when no name is given
  retry <name>            Retry a failed file from scratch
  status                  Show progress of every queued file
  login <api-key>         Store an API key sent as a bearer token
  clear                   Clear screen and redisplay welcome message
  help                    Show this help
  exit                    Exit REPL

Files are named by their relative path (e.g., 'photos/cat.jpg'); chunks the
server already stores are skipped, so re-adding an interrupted file resumes it.
Examples:
  login 9f2c6a1e-key
  add report.pdf photos/
  upload
  pause photos/cat.jpg
  retry report.pdf
  status"""

PROGRESS_BAR_WIDTH = 30
