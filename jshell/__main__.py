from jshell.shell import main

main()
