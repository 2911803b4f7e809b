from avatar_crop.app import main

main()
