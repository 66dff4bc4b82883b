from rewrite_proxy.main import main

main()
