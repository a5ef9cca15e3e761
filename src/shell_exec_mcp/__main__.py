"""shell-exec-mcp 入口点。

支持: python -m shell_exec_mcp
"""

from .app import main

if __name__ == "__main__":
    main()
