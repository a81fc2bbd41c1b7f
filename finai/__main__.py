from finai.main import main

main()
