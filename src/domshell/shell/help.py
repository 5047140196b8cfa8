"""Help texts for ``help`` and ``<command> --help``."""

from domshell.shell.commands import Verb

OVERVIEW = """\
DOMShell - the browser is your filesystem

Use '<command> --help' for detailed usage of any command.

Browser:
  tabs            List all open browser tabs
  windows         List all browser windows with their tabs
  here            Jump to the active tab in the focused window
  cd tabs/<id>    Enter a tab (by ID or name pattern)
  cd ~ or cd /    Go to browser root

Navigation:
  navigate <url>  Navigate the current tab to a URL (alias: goto)
  open <url>      Open a new tab and enter it
  refresh         Re-fetch the accessibility tree
  ls [path]       List children (tabs/windows at ~, DOM elements in a tab)
  cd <path>       Enter a container
  pwd             Show current path
  tree [depth]    Show tree view of current node

Inspection:
  cat <path>      Read metadata and text content of a node
  text [path]     Bulk extract text from a node and its descendants
  grep <pattern>  Search children for matching names
  find <pattern>  Deep recursive search with relative paths

Interaction:
  click <path>    Click an element
  focus <path>    Focus an input element
  type <text>     Type text into the focused element

System:
  whoami          Check authentication cookies
  env             Show environment variables
  export K=V      Set an environment variable
  debug           Inspect raw accessibility tree data

Type prefixes: [d]=directory [x]=interactive [-]=static"""

COMMAND_HELP: dict[Verb, str] = {
    Verb.HELP: "help - Show all available commands\n\nUsage: help",
    Verb.TABS: (
        "tabs - List all open browser tabs\n\n"
        "Usage: tabs\n\n"
        "Shows all tabs across all windows with their IDs, titles, and URLs.\n"
        "Use 'cd tabs/<id>' to switch to a specific tab.\n\n"
        "Equivalent to: ls ~/tabs/"
    ),
    Verb.WINDOWS: (
        "windows - List all browser windows with their tabs\n\n"
        "Usage: windows\n\n"
        "Active tabs are marked with *, the attached tab with *current.\n\n"
        "Equivalent to: ls ~/windows/"
    ),
    Verb.HERE: (
        "here - Jump to the active tab in the focused window\n\n"
        "Usage: here\n\n"
        "Finds the tab you are looking at and enters it, like 'cd tabs/<id>'.\n"
        "Prints 'Already in tab ...' when you are already there."
    ),
    Verb.REFRESH: (
        "refresh - Re-fetch the accessibility tree\n\n"
        "Usage: refresh\n\n"
        "Re-fetches the full tree (including iframes) and resets to the tab root."
    ),
    Verb.LS: (
        "ls - List children of the current node\n\n"
        "Usage: ls [options] [path]\n\n"
        "Options:\n"
        "  -l, --long       Long format: type prefix, role, and name\n"
        "  -r, --recursive  Show nested children (one level deep)\n"
        "  -n N             Limit output to first N entries\n"
        "  --offset N       Skip first N entries (for pagination)\n"
        "  --type ROLE      Filter by role (e.g. --type button)\n"
        "  --count          Show count of children only\n\n"
        "Type prefixes (long format):\n"
        "  [d]  Directory (container node, cd-able)\n"
        "  [x]  Interactive (button, link, input, ...)\n"
        "  [-]  Static (heading, image, text, ...)\n\n"
        "At browser level (~), ls shows windows/ and tabs/.\n"
        "'ls ~/tabs' lists browser paths from anywhere."
    ),
    Verb.CD: (
        "cd - Change directory (unified browser + DOM hierarchy)\n\n"
        "Usage: cd [path]\n\n"
        "Browser paths:\n"
        "  cd ~ or cd /      Go to browser root\n"
        "  cd tabs/123       Enter tab 123\n"
        "  cd tabs/github    Enter the first tab matching 'github'\n"
        "  cd windows/1      Enter window 1's tab listing\n"
        "  cd windows/1/123  Enter tab 123 of window 1\n\n"
        "DOM paths (inside a tab):\n"
        "  cd navigation     Enter the 'navigation' container\n"
        "  cd main/form      Multi-level path\n"
        "  cd ../sidebar     Go up then into 'sidebar'\n"
        "  cd ..             Go up one level (from the tab root, leave the tab)"
    ),
    Verb.PWD: (
        "pwd - Print working directory\n\n"
        "Usage: pwd\n\n"
        "Shows the full path from browser root, e.g. ~/tabs/123/main/form"
    ),
    Verb.CAT: (
        "cat - Read metadata and text content of a node\n\n"
        "Usage: cat <path>\n\n"
        "Shows role, type ([d]/[x]/[-]), AX ID, DOM backend ID, value,\n"
        "child count (directories), and DOM text content."
    ),
    Verb.TEXT: (
        "text - Bulk extract text content from a node and its descendants\n\n"
        "Usage: text [path] [-n N]\n\n"
        "  path    Extract text from a specific child (default: current directory)\n"
        "  -n N    Limit output to first N characters"
    ),
    Verb.TREE: (
        "tree - Show a tree view of the current node\n\n"
        "Usage: tree [depth] [path]\n\n"
        "  depth   Max depth to display (default: 2)"
    ),
    Verb.GREP: (
        "grep - Search children for matching names\n\n"
        "Usage: grep [options] <pattern> [path]\n\n"
        "Options:\n"
        "  -r, --recursive  Search all descendants recursively\n"
        "  -n N             Limit results to first N matches\n\n"
        "Matches against name, role, and value. Case-insensitive."
    ),
    Verb.FIND: (
        "find - Deep recursive search with relative paths\n\n"
        "Usage: find [options] <pattern> [path]\n\n"
        "Options:\n"
        "  --type ROLE   Filter by role (e.g. --type combobox)\n"
        "  -n N          Limit to first N results"
    ),
    Verb.CLICK: (
        "click - Click an element\n\n"
        "Usage: click <path>\n\n"
        "Clicks the DOM element; falls back to a mouse click at its centre.\n"
        "The result says which of the two worked."
    ),
    Verb.FOCUS: (
        "focus - Focus an input element\n\n"
        "Usage: focus <path>\n\n"
        "Use before 'type' to direct keyboard input."
    ),
    Verb.TYPE: (
        "type - Type text into the focused element\n\n"
        "Usage: type [--into <path>] <text>\n\n"
        "Dispatches key events character by character.\n"
        "--into focuses the element first.\n\n"
        "Example:\n"
        "  type --into search_search hello world"
    ),
    Verb.NAVIGATE: (
        "navigate - Navigate the current tab to a URL\n\n"
        "Usage: navigate <url>\n\n"
        "Requires a tab context. Re-fetches the tree after loading.\n"
        "URLs without a scheme get https://.\n\n"
        "Alias: goto"
    ),
    Verb.GOTO: "goto - Alias for navigate. See navigate --help.",
    Verb.OPEN: (
        "open - Open a new tab and enter it\n\n"
        "Usage: open <url>\n\n"
        "Creates a tab, waits for it to load, then enters it (~/tabs/<id>)."
    ),
    Verb.WHOAMI: (
        "whoami - Check authentication status via cookies\n\n"
        "Usage: whoami\n\n"
        "Reads cookies for the current URL and looks for session/auth cookies."
    ),
    Verb.ENV: "env - Show environment variables\n\nUsage: env",
    Verb.EXPORT: (
        "export - Set an environment variable\n\n"
        "Usage: export KEY=VALUE"
    ),
    Verb.DEBUG: (
        "debug - Inspect raw accessibility tree data\n\n"
        "Subcommands:\n"
        "  stats       Tree statistics\n"
        "  raw         Raw children of current node (incl. ignored)\n"
        "  node <id>   Inspect a specific node by its ID"
    ),
}


def help_for(name: str) -> str:
    verb = Verb.lookup(name)
    if verb is None:
        return f"No help available for '{name}'."
    return COMMAND_HELP[verb]
