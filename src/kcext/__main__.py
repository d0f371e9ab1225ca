from kcext.app import main

main()
