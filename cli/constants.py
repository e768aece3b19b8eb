"""CLI constants and configuration."""

from prompt_toolkit.styles import Style

COMMANDS = ["upload", "download", "delete", "list", "search", "info", "serve", "config", "clear", "exit", "help"]

PATH_COMMANDS = ("upload",)

STYLE = Style.from_dict(
    {
        "prompt": "#5865F2 bold",
        "command": "#0088ff bold",
    }
)

BLURPLE = "\033[38;2;88;101;242m"
GREEN = "\033[32m"
RESET = "\033[0m"

LOGO = f"""{BLURPLE}
 ██████╗ ██╗███████╗████████╗ ██████╗ ██████╗ ███████╗
 ██╔══██╗██║██╔════╝╚══██╔══╝██╔═══██╗██╔══██╗██╔════╝
 ██║  ██║██║███████╗   ██║   ██║   ██║██████╔╝█████╗
 ██║  ██║██║╚════██║   ██║   ██║   ██║██╔══██╗██╔══╝
 ██████╔╝██║███████║   ██║   ╚██████╔╝██║  ██║███████╗
 ╚═════╝ ╚═╝╚══════╝   ╚═╝    ╚═════╝ ╚═╝  ╚═╝╚══════╝
{RESET}"""

WELCOME_TITLE = "Distore CLI - encrypted chunked file store"
WELCOME_HELP = "Type 'help' for commands or 'exit' to quit.\n"

PROMPT_TEXT = "distore> "

HELP_TEXT = """Available commands:
  upload <local_path> [remote_dir]        Encrypt and upload a file (remote_dir defaults to /)
  download <file_id|/path> [output_path]  Download a file (output defaults to ./<name>)
  delete <file_id|/path>                  Delete a file and all of its chunks
  list [remote_dir]                       List files (everything when no directory is given)
  search <text>                           List files whose name contains text
  info <file_id|/path>                    Show a file record and its chunks
  serve [port]                            Start the HTTP range server
  config [key value]                      Show configuration, or set one value
  clear                                   Clear screen and redisplay welcome message
  help                                    Show this help
  exit                                    Exit REPL

Files are addressed by id or by virtual path (a path starts with '/').
Examples:
  upload ./videos/talk.mp4 /videos
  list /videos
  download /videos/talk.mp4 ./talk.mp4
  info /videos/talk.mp4
  delete /videos/talk.mp4
  config webhook https://discord.com/api/webhooks/<id>/<token>"""

SECRET_CONFIG_KEYS = ("webhook", "deta_project_key", "encryption_key")
